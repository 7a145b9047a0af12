import pytest

from elementalkit.types import (
    BuildConfig,
    Image,
    ImageMap,
    ImageSource,
    ImageSourceKind,
    Partition,
    PartitionList,
    RunConfig,
    SourceNotFound,
)


def test_empty_source_has_no_kind():
    o = ImageSource()
    assert o.value == ""
    assert not o.is_dir()
    assert not o.is_channel()
    assert not o.is_docker()
    assert not o.is_file()
    assert ImageSource.empty() == o


def test_constructors_set_kind():
    assert ImageSource.directory("dir").is_dir()
    assert ImageSource.file("file").is_file()
    assert ImageSource.docker("image").is_docker()
    assert ImageSource.channel("channel").is_channel()


def test_constructors_keep_value_and_only_one_kind():
    src = ImageSource.docker("image")
    assert src.value == "image"
    assert src.kind is ImageSourceKind.DOCKER
    assert not src.is_file() and not src.is_dir() and not src.is_channel()


def test_image_map_sets_and_gets():
    img_map = ImageMap()
    active = Image(label="active")
    passive = Image(label="passive")
    recovery = Image(label="recovery")
    assert img_map.active is None
    img_map.active = active
    img_map.passive = passive
    img_map.recovery = recovery
    assert img_map.active is active
    assert img_map.active.label == "active"
    assert img_map.passive is passive
    assert img_map.passive.label == "passive"
    assert img_map.recovery is recovery
    assert img_map.recovery.label == "recovery"


def test_image_map_unset_active():
    img_map = ImageMap()
    img_map.active = Image(label="active")
    img_map.active = None
    assert img_map.active is None


@pytest.fixture
def partitions():
    return PartitionList([Partition(name="one"), Partition(name="two")])


def test_partition_list_by_name(partitions):
    assert partitions.get_by_name("two") == Partition(name="two")


def test_partition_list_missing(partitions):
    assert partitions.get_by_name("nonexistent") is None


def test_source_not_found_message():
    err = SourceNotFound()
    assert "could not find source" in str(err)
    with pytest.raises(SourceNotFound, match="could not find source"):
        raise err


def test_run_config_defaults_are_independent():
    a = RunConfig()
    b = RunConfig()
    a.partitions.append(Partition(name="x"))
    assert b.partitions == []
    assert a.strict is False
    assert a.images.active is None


def test_build_config_label():
    assert BuildConfig(label="iso").label == "iso"