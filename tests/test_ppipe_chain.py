import pytest

from ppipe.ppipe_chain import (
    Pipe, PipeFactory, MemberKind, resolve_member, build_extension_table, ppipe
)
from ppipe.ppipe_datatypes import (
    Settled, Faulted, MissingMemberError, PipeUsageError, _
)


def add(a, b):
    return a + b


def double(x):
    return x * 2


def explode(value):
    raise ValueError("boom")


class Doubler:
    def double(self, value):
        return value * 2


# --- Terminal access ---

def test_identity():
    value = object()
    pipe = ppipe(value)
    assert pipe.value is value
    assert pipe.val is value
    assert pipe() is value


def test_steps_return_new_pipes():
    first = ppipe(5)
    second = first(add, _, 3)
    assert isinstance(second, Pipe)
    assert second is not first
    assert first.value == 5
    assert second.value == 8


def test_composition():
    def inc(x):
        return x + 1

    assert ppipe(3)(inc)(double).value == ppipe(3)(lambda x: double(inc(x))).value


def test_pipe_attribute_is_self():
    pipe = ppipe(1)
    assert pipe.pipe is pipe


def test_faulted_value_raises():
    pipe = ppipe(1)(explode)
    with pytest.raises(ValueError, match="boom"):
        pipe.value
    with pytest.raises(ValueError, match="boom"):
        pipe()


def test_keywords_need_a_step_function():
    with pytest.raises(PipeUsageError):
        ppipe(1)(sep=",")


def test_lone_placeholder_step():
    assert ppipe({"user": {"name": "ada"}})(_.user.name).value == "ada"
    assert ppipe({"user": {}})(_.user.name).value is None


# --- Member dispatch ---

def test_resolve_member_precedence():
    ext = {"upper": lambda v: "ext", "double": double}
    context = {"upper": lambda v: "ctx"}
    assert resolve_member("upper", "a", context, ext).kind is MemberKind.CONTEXT
    assert resolve_member("upper", "a", None, ext).kind is MemberKind.VALUE
    assert resolve_member("double", "a", None, ext).kind is MemberKind.EXTENSION
    assert resolve_member("nope", "a", None, ext).kind is MemberKind.MISSING


def test_non_callable_context_member_is_skipped():
    member = resolve_member("upper", "a", {"upper": "not callable"})
    assert member.kind is MemberKind.VALUE


def test_value_method_forwarding():
    assert ppipe("a,b").split(",").value == ["a", "b"]
    assert ppipe(" hi ").strip().upper().value == "HI"


def test_value_property_becomes_next_value():
    assert ppipe({"name": "ada"}).name().value == "ada"
    assert ppipe(3 + 4j).get("imag").value == 4.0


def test_value_method_with_placeholder_argument():
    assert ppipe([3, 1, 2]).index(_[2]).value == 2


def test_get_is_the_explicit_form():
    assert ppipe("abc").get("upper").value == "ABC"
    assert ppipe("a-b").get("replace", "-", "+").value == "a+b"


def test_missing_member_raises_at_the_call():
    with pytest.raises(MissingMemberError) as excinfo:
        ppipe(5).frobnicate()
    assert excinfo.value.name == "frobnicate"
    assert excinfo.value.target == 5


def test_private_names_are_not_members():
    with pytest.raises(AttributeError):
        ppipe(5)._state_of_things


def test_members_on_a_faulted_chain_keep_the_error():
    pipe = ppipe(1)(explode).frobnicate().upper()
    with pytest.raises(ValueError, match="boom"):
        pipe.value


# --- Context ---

def test_with_binds_a_context():
    pipe = ppipe(21).with_(Doubler())
    assert pipe.double().value == 42
    # Inherited by later steps
    assert pipe.double().double().value == 84


def test_context_beats_the_value():
    context = {"upper": lambda s: f"ctx:{s}"}
    assert ppipe("a").with_(context).upper().value == "ctx:a"


def test_context_method_with_placeholder():
    context = {"pick": lambda key, data: data[key]}
    assert ppipe({"k": "v"}).with_(context).pick("k", _).value == "v"


def test_with_keeps_the_state():
    pipe = ppipe(1)(explode).with_(Doubler())
    with pytest.raises(ValueError):
        pipe.value


# --- Extensions ---

def test_extension_table_from_mapping():
    factory = PipeFactory({"double": double, "add": add})
    assert factory(4).double().value == 8
    assert factory(1).add(2).value == 3
    assert factory(5).add(_).value == 10


def test_extension_table_from_namespace():
    class Tools:
        limit = 10

        def triple(value):
            return value * 3

        @staticmethod
        def negate(value):
            return -value

    table = build_extension_table(Tools)
    assert set(table) == {"triple", "negate"}
    assert PipeFactory(Tools)(2).triple().negate().value == -6


def test_non_callable_extensions_are_ignored():
    table = build_extension_table({"answer": 42, "double": double, 3: double})
    assert list(table) == ["double"]


def test_extension_table_is_read_only():
    factory = PipeFactory({"double": double})
    with pytest.raises(TypeError):
        factory.extensions["double"] = add


def test_value_member_beats_extension():
    factory = PipeFactory({"upper": lambda v: "ext"})
    assert factory("a").upper().value == "A"
    # Also after re-extending the default factory
    assert ppipe.extend({"upper": lambda v: "ext"})("a").upper().value == "A"
    assert ppipe.extend({"double": double}).extend({"upper": lambda v: "ext"})("a").upper().value == "A"


def test_extend_returns_a_new_factory():
    base = PipeFactory({"double": double})
    extended = base.extend({"double": lambda v: v * 10, "inc": lambda v: v + 1})
    assert base(2).double().value == 4
    assert extended(2).double().inc().value == 21
    assert "inc" not in base.extensions


def test_factory_exposes_the_placeholder():
    assert ppipe._ is _
    assert PipeFactory._ is _


# --- then / catch (sync chains) ---

@pytest.mark.asyncio
async def test_then_on_settled_chain():
    assert await ppipe(5).then(lambda v: v + 1) == 6
    assert await ppipe(5).then() == 5


@pytest.mark.asyncio
async def test_catch_recovers_locally():
    pipe = ppipe(1)(explode)
    assert await pipe.catch(lambda e: f"caught {e}") == "caught boom"
    # The chain itself stays faulted
    with pytest.raises(ValueError):
        pipe.value


@pytest.mark.asyncio
async def test_then_without_failure_handler_rejects():
    with pytest.raises(ValueError, match="boom"):
        await ppipe(1)(explode).then(lambda v: v)


@pytest.mark.asyncio
async def test_pipe_is_awaitable():
    assert await ppipe(2)(double) == 4


# --- repr ---

def test_repr():
    assert repr(ppipe(5)) == "<Pipe Settled(5)>"
    assert repr(ppipe(5).with_("ctx")) == "<Pipe Settled(5) with 'ctx'>"
    assert repr(Pipe(Faulted(KeyError("k")))) == "<Pipe Faulted(KeyError('k'))>"
    assert repr(PipeFactory({"double": double})) == "<PipeFactory extensions=[double]>"


def test_pipe_state_types():
    assert isinstance(ppipe(1)._state, Settled)
    assert isinstance(ppipe(1)(explode)._state, Faulted)
