import pytest

from elementalkit.cleanstack import CleanStack, MultiError


def test_push_and_pop():
    cleaner = CleanStack()
    flag = []
    assert cleaner.pop() is None
    cleaner.push(lambda: flag.append(True))
    job = cleaner.pop()
    job()
    assert flag == [True]
    assert cleaner.pop() is None


def test_cleanup_runs_in_reverse_order():
    cleaner = CleanStack()
    result = []
    cleaner.push(lambda: result.append("one "))
    cleaner.push(lambda: result.append("two "))
    cleaner.push(lambda: result.append("three "))
    cleaner.cleanup(None)
    assert "".join(result) == "three two one "
    assert len(cleaner) == 0


def test_cleanup_keeps_former_error_and_runs_all():
    cleaner = CleanStack()
    count = [0]

    def callback():
        count[0] += 1
        if count[0] == 2:
            raise RuntimeError("Cleanup Error")

    for _ in range(3):
        cleaner.push(callback)
    with pytest.raises(MultiError) as info:
        cleaner.cleanup(RuntimeError("Former error"))
    assert count[0] == 3
    assert "Former error" in str(info.value)
    assert len(info.value.errors) == 2


def test_cleanup_reports_all_errors():
    cleaner = CleanStack()
    count = [0]

    def callback():
        count[0] += 1
        if count[0] >= 2:
            raise RuntimeError(f"Cleanup error {count[0]}")

    for _ in range(3):
        cleaner.push(callback)
    with pytest.raises(MultiError) as info:
        cleaner.cleanup(None)
    assert count[0] == 3
    assert "Cleanup error 2" in str(info.value)
    assert "Cleanup error 3" in str(info.value)


def test_cleanup_with_only_former_error_raises_it():
    cleaner = CleanStack()
    with pytest.raises(MultiError) as info:
        cleaner.cleanup(ValueError("boom"))
    assert [str(e) for e in info.value.errors] == ["boom"]