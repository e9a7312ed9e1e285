import pytest

from dzfs.blockdev import FileBlockDevice, MemoryBlockDevice
from dzfs.errors import ArgumentError, DiskIOError
from dzfs.layout import BLOCK_SIZE


def _pattern(value):
    return bytes([value]) * BLOCK_SIZE


def test_memory_device_starts_zeroed():
    dev = MemoryBlockDevice(4)
    assert dev.total_blocks() == 4
    assert dev.read_block(3) == bytes(BLOCK_SIZE)


def test_memory_device_round_trip():
    dev = MemoryBlockDevice(4)
    dev.write_block(2, _pattern(0xAB))
    assert dev.read_block(2) == _pattern(0xAB)
    assert dev.read_block(1) == bytes(BLOCK_SIZE)
    assert dev.read_block(3) == bytes(BLOCK_SIZE)


@pytest.mark.parametrize("index", [-1, 4, 100])
def test_memory_device_out_of_range(index):
    dev = MemoryBlockDevice(4)
    with pytest.raises(DiskIOError):
        dev.read_block(index)
    with pytest.raises(DiskIOError):
        dev.write_block(index, _pattern(1))


def test_memory_device_rejects_wrong_size():
    dev = MemoryBlockDevice(2)
    with pytest.raises(ArgumentError):
        dev.write_block(0, b"short")


def test_memory_device_rejects_negative_size():
    with pytest.raises(ArgumentError):
        MemoryBlockDevice(-1)


def test_file_device_create_sets_size(tmp_path):
    path = tmp_path / "disk.img"
    with FileBlockDevice(path, blocks=4, create=True) as dev:
        assert dev.total_blocks() == 4
        assert dev.read_block(3) == bytes(BLOCK_SIZE)
    assert path.stat().st_size == 4 * BLOCK_SIZE


def test_file_device_persists(tmp_path):
    path = tmp_path / "disk.img"
    with FileBlockDevice(path, blocks=3, create=True) as dev:
        dev.write_block(1, _pattern(0x5A))
    with FileBlockDevice(path) as dev:
        assert dev.total_blocks() == 3
        assert dev.read_block(1) == _pattern(0x5A)
        assert dev.read_block(0) == bytes(BLOCK_SIZE)


def test_file_device_honours_offset(tmp_path):
    path = tmp_path / "disk.img"
    offset = 512
    with FileBlockDevice(path, blocks=2, offset=offset, create=True) as dev:
        dev.write_block(0, _pattern(0x11))
    raw = path.read_bytes()
    assert raw[:offset] == bytes(offset)
    assert raw[offset:offset + BLOCK_SIZE] == _pattern(0x11)
    with FileBlockDevice(path, offset=offset) as dev:
        assert dev.total_blocks() == 2
        assert dev.read_block(0) == _pattern(0x11)


def test_file_device_out_of_range(tmp_path):
    path = tmp_path / "disk.img"
    with FileBlockDevice(path, blocks=2, create=True) as dev:
        with pytest.raises(DiskIOError):
            dev.read_block(2)
        with pytest.raises(ArgumentError):
            dev.write_block(0, b"x")


def test_file_device_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        FileBlockDevice(tmp_path / "missing.img")


def test_file_device_read_after_close(tmp_path):
    dev = FileBlockDevice(tmp_path / "disk.img", blocks=1, create=True)
    dev.close()
    with pytest.raises(DiskIOError):
        dev.read_block(0)


def test_file_device_create_keeps_existing_data(tmp_path):
    path = tmp_path / "disk.img"
    with FileBlockDevice(path, blocks=2, create=True) as dev:
        dev.write_block(1, _pattern(0x22))
    with FileBlockDevice(path, blocks=2, create=True) as dev:
        assert dev.read_block(1) == _pattern(0x22)