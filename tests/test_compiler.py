"""Tests for the class compiler and the generated constructors."""

import pytest

from hintcc import (
    AccessError, ArgumentError, DefinitionError, Instance, ValidationError, within,
)
from hintcc.semantic.compiler import ClassCompiler


def _foo_hook(self, args):
    self.quux = self.quux + args.get("bar", 0)


@pytest.fixture
def Foo(compiler):
    return compiler.define_class(
        "Foo",
        [("has", "bar;"), ("has", "qux = 3;"), ("has", "quux: int = 5;")],
        {"__post_init__": _foo_hook},
    )


class TestConstructor:
    """Tests for the generated constructor protocol."""

    def test_end_to_end(self, Foo):
        foo = Foo(bar=2)
        assert foo.quux == 7
        assert foo.qux == 3
        assert foo.bar == 2

    def test_missing_required(self, Foo):
        with pytest.raises(ArgumentError) as info:
            Foo()
        assert str(info.value).startswith("bar is a required parameter for class Foo")

    def test_argument_error_is_a_type_error(self, Foo):
        with pytest.raises(TypeError):
            Foo()

    def test_unknown_argument(self, Foo):
        with pytest.raises(ArgumentError, match="^nope is not a valid argument for class Foo$"):
            Foo(bar=1, nope=2)

    def test_required_set_in_hook(self, compiler):
        def hook(self, args):
            self.area = self.width * self.height

        Rect = compiler.define_class(
            "Rect", [("has", "width: num;"), ("has", "height: num;"), ("has", "area: num;")],
            {"__post_init__": hook})
        assert Rect(width=2, height=3).area == 6

    def test_display(self, Foo):
        assert str(Foo(bar=2)) == "Foo(bar=>2, quux=>7, qux=>3)"
        assert repr(Foo(bar=0)) == "Foo(bar=>0, quux=>5, qux=>3)"

    def test_nested_display(self, compiler, Foo):
        Box = compiler.define_class("Box", [("has", "item: Foo | undef = None;")])
        assert str(Box(item=Foo(bar=1))) == "Box(item=>Foo(bar=>1, quux=>6, qux=>3))"
        assert str(Box()) == "Box(item=>undef)"

    def test_initvar(self, compiler):
        def hook(self, args):
            self.total = args["price"] * args["qty"]

        Order = compiler.define_class(
            "Order",
            [("initvar", "price: num;"), ("initvar", "qty: int = 1;"), ("has", "total: num;")],
            {"__post_init__": hook})
        order = Order(price=3)
        assert order.total == 3
        assert "price" not in order
        assert "qty" not in order
        assert Order(price=2, qty=4).total == 8
        assert not hasattr(Order, "price")

    def test_deferred_initvar_default_is_forced_for_the_hook(self, compiler):
        seen = {}

        def hook(self, args):
            seen.update(args)

        Job = compiler.define_class(
            "Job", [("has", "name: str;"), ("initvar", "label: str = lambda self: self.name.upper();")],
            {"__post_init__": hook})
        Job(name="build")
        assert seen == {"name": "build", "label": "BUILD"}


class TestDeferredDefaults:
    """Deferred and lazy defaults."""

    def test_lazy_not_evaluated_at_construction(self, compiler, unit):
        calls = []
        unit.namespace["calls"] = calls
        Radar = compiler.define_class(
            "Radar", [("lazy", "ping: int = lambda self: calls.append(1) or len(calls);")])
        radar = Radar()
        assert calls == []
        assert str(radar) == "Radar(ping=><deferred>)"
        assert radar.ping == 1
        # no caching: every read evaluates again
        assert radar.ping == 2

    def test_deferred_forced_once_after_hook(self, compiler, unit):
        calls = []
        unit.namespace["calls"] = calls

        def hook(self, args):
            self.stage = "hooked"

        Thing = compiler.define_class(
            "Thing",
            [("has", "tags = lambda self: calls.append(self['stage']) or ['t'];"),
             ("has", "stage: str = 'new';")],
            {"__post_init__": hook})
        thing = Thing()
        assert calls == ["hooked"]
        assert thing.tags == ["t"]
        assert thing["tags"] == ["t"]
        assert calls == ["hooked"]

    def test_deferred_not_forced_when_supplied(self, compiler, unit):
        calls = []
        unit.namespace["calls"] = calls
        Thing = compiler.define_class("Thing", [("has", "tags = lambda self: calls.append(1) or [];")])
        assert Thing(tags=["x"]).tags == ["x"]
        assert calls == []

    def test_deferred_not_forced_when_hook_supplies(self, compiler, unit):
        calls = []
        unit.namespace["calls"] = calls

        def hook(self, args):
            self.tags = ["from hook"]

        Thing = compiler.define_class(
            "Thing", [("has", "tags = lambda self: calls.append(1) or [];")], {"__post_init__": hook})
        assert Thing().tags == ["from hook"]
        assert calls == []

    def test_lazy_reads_private_state_in_owner_context(self, compiler):
        Account = compiler.define_class(
            "Account", [("private", "balance: num = 10;"),
                        ("lazy", "summary: str = lambda self: f'balance {self.balance}';")])
        assert Account().summary == "balance 10"


class TestAccessControl:
    """Private, protected, readonly and lazy access rules."""

    @pytest.fixture
    def Safe(self, compiler):
        def peek(self):
            return self.secret

        def bump(self):
            self.secret = self.secret + 1
            return self.secret

        return compiler.define_class(
            "Safe", [("private", "secret: int = 1;"), ("protected", "shared: str = 's';")],
            {"peek": peek, "bump": bump})

    def test_private_inside_defining_class(self, Safe):
        safe = Safe()
        assert safe.peek() == 1
        assert safe.bump() == 2

    def test_private_outside(self, Safe):
        with pytest.raises(AccessError, match="^secret is a private attribute$"):
            Safe().secret
        with pytest.raises(AccessError):
            Safe().secret = 5

    def test_private_from_subclass(self, compiler, Safe):
        Vault = compiler.define_class("Vault extends Safe", [],
                                      {"steal": lambda self: self.secret})
        vault = Vault()
        assert vault.peek() == 1
        with pytest.raises(AccessError, match="private"):
            vault.steal()
        with within(Vault):
            with pytest.raises(AccessError):
                vault.secret

    def test_protected(self, compiler, Safe):
        Vault = compiler.define_class("Vault extends Safe", [],
                                      {"borrow": lambda self: self.shared})
        Other = compiler.define_class("Other", [],
                                      {"borrow": lambda self, other: other.shared})
        vault = Vault()
        assert vault.borrow() == "s"
        with within(Safe):
            assert vault.shared == "s"
        with pytest.raises(AccessError, match="^shared is a protected attribute$"):
            vault.shared
        with pytest.raises(AccessError):
            Other().borrow(vault)

    def test_raw_access_bypasses_control(self, Safe):
        safe = Safe(secret=7)
        assert safe["_secret"] == 7
        safe["_secret"] = 9
        assert safe.peek() == 9

    def test_readonly(self, compiler):
        def rename(self):
            self.sku = "changed"

        Item = compiler.define_class("Item", [("readonly", "sku: str;")], {"rename": rename})
        item = Item(sku="A-1")
        assert item.sku == "A-1"
        assert item["_sku"] == "A-1"
        with pytest.raises(AccessError, match="^sku is readonly$"):
            item.sku = "B"
        with pytest.raises(AccessError):
            item.rename()

    def test_lazy_is_not_writable(self, compiler):
        Radar = compiler.define_class("Radar", [("lazy", "ping = lambda self: 1;")],
                                      {"reset": lambda self: setattr(self, "ping", 0)})
        with pytest.raises(AccessError):
            Radar().ping = 3
        with pytest.raises(AccessError):
            Radar().reset()

    def test_attributes_cannot_be_deleted(self, Foo):
        with pytest.raises(AccessError):
            del Foo(bar=1).bar


class TestOverrideHooks:
    """get_<name> / set_<name> hooks."""

    @pytest.fixture
    def Person(self, compiler):
        def get_name(self):
            return self.name.title()

        def set_name(self, value):
            self.name = value.strip()

        return compiler.define_class("Person", [("has", "name: str;")],
                                     {"get_name": get_name, "set_name": set_name})

    def test_setter_runs_in_constructor(self, Person):
        person = Person(name="  ada lovelace ")
        assert person["name"] == "ada lovelace"

    def test_getter(self, Person):
        assert Person(name="ada lovelace").name == "Ada Lovelace"

    def test_setter_on_assignment(self, Person):
        person = Person(name="x")
        person.name = " grace "
        assert person["name"] == "grace"

    def test_hooks_are_resolved_per_class(self, compiler, Person):
        Shouter = compiler.define_class("Shouter extends Person", [],
                                        {"get_name": lambda self: self.name.upper()})
        assert Shouter(name=" ada ").name == "ADA"
        assert Person(name=" ada ").name == "Ada"

    def test_descriptor_records_hooks(self, Person):
        attr = Person.__hint_class__.attribute("name")
        assert attr.getter is not None
        assert attr.setter is not None


class TestInheritance:
    """Parents, flattening and external bases."""

    def test_subclass_reuses_parent_descriptor(self, compiler):
        Base = compiler.define_class(
            "Base", [("private", "token: str = 'b';"), ("has", "size: int = 1;")],
            {"token_of": lambda self: self.token})
        Derived = compiler.define_class("Derived extends Base", [("has", "size: int = 2;")])

        base, derived = Base.__hint_class__, Derived.__hint_class__
        inherited = derived.attribute("token")
        assert inherited.hint == base.attribute("token").hint
        assert inherited.default == "b"
        assert inherited.owner is base
        assert inherited.internal_key == "_token"
        assert derived.attribute("size").default == 2

        obj = Derived()
        assert obj.size == 2
        assert obj.token_of() == "b"
        assert isinstance(obj, Base)
        with within(Derived):
            with pytest.raises(AccessError):
                obj.token
        with within(Base):
            assert obj.token == "b"

    def test_parent_argument_overrides_header(self, compiler, Foo):
        Child = compiler.define_class("Child", [("has", "extra = 0;")], parent="Foo")
        assert Child(bar=1).quux == 6
        assert Child.__hint_class__.parent is Foo.__hint_class__

    def test_unknown_parent(self, compiler):
        with pytest.raises(DefinitionError, match="^Ghost not found. Do you need to import or load it\\?$"):
            compiler.define_class("Orphan extends Ghost", [])

    def test_parent_must_be_a_class(self, compiler, unit):
        unit.namespace["thing"] = 5
        with pytest.raises(DefinitionError, match="not a class"):
            compiler.define_class("Odd extends thing", [])

    def test_external_python_parent(self, compiler, unit):
        class Plain:
            def hello(self):
                return "hi"

        unit.namespace["Plain"] = Plain
        Fancy = compiler.define_class("Fancy extends Plain", [("has", "n = 1;")])
        fancy = Fancy()
        assert isinstance(fancy, Plain)
        assert isinstance(fancy, Instance)
        assert fancy.hello() == "hi"
        assert Fancy.__mro__[1:3] == (Instance, Plain)

    def test_walks_through_external_classes(self, compiler, unit, Foo):
        class Middle(Foo):
            pass

        unit.namespace["Middle"] = Middle
        Leaf = compiler.define_class("Leaf extends Middle", [("has", "own = 1;")])
        assert set(Leaf.__hint_class__.names) == {"bar", "qux", "quux", "own"}
        assert Leaf(bar=3).quux == 8

    def test_parent_from_another_unit(self, space, compiler):
        other = ClassCompiler(space.unit("zoo"))
        other.define_class("Animal", [("has", "legs: int = 4;")])
        Dog = compiler.define_class("Dog extends zoo.Animal", [])
        assert Dog().legs == 4

    def test_same_unit_short_name_wins(self, space, compiler):
        ClassCompiler(space.unit("zoo")).define_class("Animal", [("has", "legs: int = 4;")])
        compiler.define_class("Animal", [("has", "legs: int = 2;")])
        Bird = compiler.define_class("Bird extends Animal", [])
        assert Bird().legs == 2

    def test_python_subclass_of_generated_class(self, Foo):
        class Special(Foo):
            def describe(self):
                return f"quux={self.quux}"

        assert Special(bar=1).describe() == "quux=6"

    def test_flatten_order_first_seen_wins(self, compiler, unit):
        A = compiler.define_class("A", [("has", "x = 'a';")])
        B = compiler.define_class("B", [("has", "x = 'b';"), ("has", "y = 'b';")])

        class Mixed(A, B):
            pass

        unit.namespace["Mixed"] = Mixed
        C = compiler.define_class("C extends Mixed", [])
        # parents are visited in reverse declared order: B before A
        assert C().x == "b"
        assert C().y == "b"


class TestDefinitionErrors:
    """Errors raised while defining classes."""

    def test_redefinition(self, compiler, Foo):
        with pytest.raises(DefinitionError, match="^class shop.Foo already defined$"):
            compiler.define_class("Foo", [])

    def test_same_short_name_in_other_unit_is_fine(self, space, Foo):
        Other = ClassCompiler(space.unit("elsewhere")).define_class("Foo", [])
        assert Other.__hint_class__.qualified_name == "elsewhere.Foo"
        assert space.short_names["Foo"] == ["shop.Foo", "elsewhere.Foo"]

    def test_duplicate_attribute(self, compiler):
        with pytest.raises(DefinitionError, match="^a already defined as an attribute$"):
            compiler.define_class("Dup", [("has", "a;"), ("private", "a;")])

    def test_internal_key_collision(self, compiler):
        with pytest.raises(DefinitionError, match="conflicts with attribute _a"):
            compiler.define_class("Clash", [("has", "_a;"), ("private", "a;")])

    def test_invalid_hint(self, compiler):
        with pytest.raises(ValidationError, match="Widget is not a valid type hint"):
            compiler.define_class("Bad", [("has", "w: Widget;")])

    def test_invalid_container(self, compiler):
        with pytest.raises(ValidationError, match="str is not an allowed container"):
            compiler.define_class("Bad", [("has", "w: str[int];")])

    def test_self_reference_in_hint(self, compiler):
        Node = compiler.define_class("Node", [("has", "next: Node | undef = None;")])
        assert Node(next=Node()).next.next is None

    def test_method_attribute_clash(self, compiler):
        with pytest.raises(DefinitionError, match="both an attribute and a method"):
            compiler.define_class("Clash", [("has", "size;")], {"size": lambda self: 1})

    def test_init_is_generated(self, compiler):
        with pytest.raises(DefinitionError, match="cannot define __init__"):
            compiler.define_class("Manual", [], {"__init__": lambda self: None})

    def test_invalid_header(self, compiler):
        with pytest.raises(DefinitionError, match="Invalid class name"):
            compiler.define_class("not valid!", [])

    @pytest.mark.parametrize("name", ["keys", "__getitem__", "__post_init__", "__hint_class__"])
    def test_protocol_names_rejected(self, compiler, name):
        with pytest.raises(DefinitionError, match=f"{name} is reserved by the object protocol"):
            compiler.define_class("K", [("has", f"{name}: int = 1;")])

    def test_protocol_name_allowed_as_initvar(self, compiler):
        K = compiler.define_class("K", [("initvar", "keys: int = 1;")])
        assert list(K().keys()) == []

    def test_failed_definition_releases_short_name(self, compiler, space):
        with pytest.raises(DefinitionError, match="Missing not found"):
            compiler.define_class("Ghost extends Missing", [])
        assert "Ghost" not in space.short_names
        assert not space.is_class_name("Ghost")
        with pytest.raises(ValidationError, match="Ghost is not a valid type hint"):
            compiler.define_class("User", [("has", "g: Ghost;")])

    def test_failed_definition_keeps_other_units_short_name(self, compiler, space):
        ClassCompiler(space.unit("elsewhere")).define_class("Ghost", [])
        with pytest.raises(ValidationError):
            compiler.define_class("Ghost", [("has", "w: Widget;")])
        assert space.short_names["Ghost"] == ["elsewhere.Ghost"]

    def test_failed_definition_can_be_retried(self, compiler, unit):
        with pytest.raises(ValidationError):
            compiler.define_class("Retry", [("has", "w: Widget;")])
        Retry = compiler.define_class("Retry", [("has", "w: int = 1;")])
        assert unit.namespace["Retry"] is Retry
        assert Retry().w == 1


class TestRegistration:
    """Generated classes are registered and bound."""

    def test_bound_in_unit_namespace(self, unit, space, Foo):
        assert unit.namespace["Foo"] is Foo
        assert Foo.__module__ == "shop"
        assert Foo.__qualname__ == "Foo"
        assert space.lookup("shop.Foo").cls is Foo
        assert unit.classes["Foo"] is Foo.__hint_class__

    def test_descriptor_is_frozen(self, Foo):
        descriptor = Foo.__hint_class__
        assert descriptor.frozen
        with pytest.raises(TypeError):
            descriptor.attributes["x"] = None

    def test_dump(self, space, Foo):
        dump = space.dump()
        assert "[shop]" in dump
        assert "class Foo" in dump
        assert "public quux: int  [quux]" in dump


class TestCompileFunction:
    """Functions with hinted parameters."""

    def test_hints_recorded_not_enforced(self, compiler):
        fn = compiler.compile_function("scale", "x: int, factor: num = 2",
                                       "\n    return x * factor\n", return_hint="num", line=3)
        assert fn(3) == 6
        assert fn("ab") == "abab"
        assert fn.__annotations__ == {"x": "int", "factor": "num", "return": "num"}
        assert fn.__module__ == "shop"

    def test_invalid_parameter_hint(self, compiler):
        with pytest.raises(ValidationError, match="Widget"):
            compiler.compile_function("f", "x: Widget", "return x")

    def test_invalid_return_hint(self, compiler):
        with pytest.raises(ValidationError, match="int is not an allowed container"):
            compiler.compile_function("f", "x", "return x", return_hint="int[str]")

    def test_body_line_numbers(self, compiler):
        fn = compiler.compile_function("boom", "", "\n    x = 1\n    raise ValueError(x)\n", line=10)
        with pytest.raises(ValueError) as info:
            fn()
        tb = info.tb
        while tb.tb_next is not None:
            tb = tb.tb_next
        assert tb.tb_lineno == 12

    def test_empty_body(self, compiler):
        assert compiler.compile_function("noop", "self", "  ")(None) is None

    def test_body_sees_unit_namespace(self, compiler, unit):
        unit.namespace["RATE"] = 3
        fn = compiler.compile_function("apply", "x", "return x * RATE")
        assert fn(2) == 6

    def test_parameter_syntax_error(self, compiler):
        with pytest.raises(DefinitionError, match="invalid parameter list for f"):
            compiler.compile_function("f", "x,,", "return 1")

    def test_body_syntax_error(self, compiler):
        with pytest.raises(DefinitionError, match="syntax error in body of f"):
            compiler.compile_function("f", "", "\n    return (\n", line=4)

    def test_method_qualname(self, compiler):
        fn = compiler.compile_function("area", "self", "return 1", owner="Rect")
        assert fn.__qualname__ == "Rect.area"


class TestCompileBind:
    """bind declarations."""

    def test_bind(self, compiler, unit):
        assert compiler.compile_bind("RATE", "num", "0.5") == 0.5
        assert unit.namespace["RATE"] == 0.5
        assert unit.namespace["__annotations__"]["RATE"] == "num"

    def test_bind_without_value(self, compiler, unit):
        compiler.compile_bind("PENDING", "int | undef")
        assert unit.namespace["PENDING"] is None

    def test_bind_invalid_hint(self, compiler, unit):
        with pytest.raises(ValidationError):
            compiler.compile_bind("X", "Nope", "1")
        assert "X" not in unit.namespace
