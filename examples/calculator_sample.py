def add(a, b):
    return a + b


def test_adds_two_numbers():
    assert add(1, 2) == 3


def test_adds_negative_numbers():
    assert add(-1, -2) == 3
