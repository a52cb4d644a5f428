import pytest

from chainlab.examples.hello_world import HelloWorld, HelloWorldError
from chainlab.traits import Address, Context


def create_account(n=1):
    addr = Address(bytes([n]) * 20)
    return addr, Context().with_sender(addr).with_gas(100_000)


def test_paths():
    _me, ctx = create_account()
    helloworld = HelloWorld(ctx)

    assert helloworld.say_hello(ctx, "sl") == "Pozdravljen, svet!"
    assert helloworld.say_hello(ctx, "ws") is None

    with pytest.raises(HelloWorldError) as excinfo:
        helloworld.add_hello(ctx, "en", "Zeno World!")
    assert excinfo.value.kind is HelloWorldError.Kind.DUPLICATE_ENTRY

    helloworld.add_hello(ctx, "ws", "alofa fiafia i le lalolagi!")
    assert helloworld.say_hello(ctx, "ws") == "alofa fiafia i le lalolagi!"


@pytest.mark.parametrize(
    "language, greeting",
    [
        ("en", "Hello, world!"),
        ("sl", "Pozdravljen, svet!"),
        ("de", "Hello Welt!"),
        ("fr", "Bonjour le monde!"),
    ],
)
def test_default_greetings(language, greeting):
    _, ctx = create_account()
    assert HelloWorld(ctx).say_hello(ctx, language) == greeting


def test_duplicate_keeps_original():
    _, ctx = create_account()
    hw = HelloWorld(ctx)
    with pytest.raises(HelloWorldError):
        hw.add_hello(ctx, "de", "Hallo Welt!")
    assert hw.say_hello(ctx, "de") == "Hello Welt!"


def test_error_equality():
    assert HelloWorldError(HelloWorldError.Kind.DUPLICATE_ENTRY) == HelloWorldError(
        HelloWorldError.Kind.DUPLICATE_ENTRY
    )
    assert str(HelloWorldError(HelloWorldError.Kind.DUPLICATE_ENTRY)) == "Duplicate entry."