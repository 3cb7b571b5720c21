import pytest


class ScriptedRandom:
    """Uniform source returning a fixed sequence of draws."""

    def __init__(self, values):
        self.values = list(values)
        self.calls = 0

    def random(self) -> float:
        if not self.values:
            raise AssertionError("ScriptedRandom exhausted")
        self.calls += 1
        return self.values.pop(0)


@pytest.fixture
def scripted():
    return ScriptedRandom
