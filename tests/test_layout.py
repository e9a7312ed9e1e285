import pytest

from dzfs.errors import ArgumentError, LimitError
from dzfs.layout import (
    BLOCK_SIZE,
    DIRECT_BLOCKS,
    INDIRECT_BLOCK_COUNT,
    MAGIC,
    MAX_DIR_CONTENTS,
    MAX_FILENAME,
    MAX_FILESIZE,
    VERSION,
    DirectoryBlock,
    EntityType,
    FileBlock,
    Stat,
    Superblock,
    decode_header,
    pack_indirect,
    unpack_indirect,
)


def test_superblock_starts_with_magic():
    data = Superblock(blocks=100).pack()
    assert len(data) == BLOCK_SIZE
    assert data[:4] == b"dzFS"


def test_superblock_round_trip():
    original = Superblock(blocks=12345)
    restored = Superblock.unpack(original.pack())
    assert restored == original
    assert restored.valid
    assert restored.version == VERSION


def test_zero_block_is_not_a_valid_superblock():
    restored = Superblock.unpack(bytes(BLOCK_SIZE))
    assert not restored.valid
    assert restored.magic != MAGIC


def test_max_filesize_round_trips_in_file_block():
    block = FileBlock(name="big", size=MAX_FILESIZE)
    restored = FileBlock.unpack(block.pack())
    assert restored.size == MAX_FILESIZE == 8110080


def test_file_block_round_trip():
    direct = [0] * DIRECT_BLOCKS
    direct[0] = 7
    direct[-1] = 99
    block = FileBlock(
        name="hello.txt",
        creation_date=1700000000,
        size=5000,
        indirect_block=42,
        direct_blocks=direct,
    )
    data = block.pack()
    assert len(data) == BLOCK_SIZE
    assert FileBlock.unpack(data) == block


def test_short_direct_list_is_padded():
    block = FileBlock(name="a", direct_blocks=[5, 6])
    restored = FileBlock.unpack(block.pack())
    assert restored.direct_blocks[:2] == [5, 6]
    assert len(restored.direct_blocks) == DIRECT_BLOCKS
    assert set(restored.direct_blocks[2:]) == {0}


def test_directory_block_round_trip():
    contents = [0] * MAX_DIR_CONTENTS
    contents[0] = 10
    contents[-1] = 11
    block = DirectoryBlock(
        name="/", creation_date=-5, parent=3, content_dnodes=contents
    )
    data = block.pack()
    assert len(data) == BLOCK_SIZE
    assert DirectoryBlock.unpack(data) == block


def test_type_byte_is_first():
    assert FileBlock(name="f").pack()[0] == EntityType.FILE == 1
    assert DirectoryBlock(name="d").pack()[0] == EntityType.FOLDER == 2


def test_decode_header_of_file_and_folder():
    file_data = FileBlock(name="notes", creation_date=77).pack()
    folder_data = DirectoryBlock(name="docs", creation_date=88).pack()
    assert decode_header(file_data) == (EntityType.FILE, "notes", 77)
    assert decode_header(folder_data) == (EntityType.FOLDER, "docs", 88)


def test_decode_header_of_empty_block():
    assert decode_header(bytes(BLOCK_SIZE)) == (0, "", 0)


def test_longest_name_fits():
    name = "x" * MAX_FILENAME
    assert FileBlock.unpack(FileBlock(name=name).pack()).name == name


def test_name_too_long_raises_limit():
    with pytest.raises(LimitError):
        FileBlock(name="x" * (MAX_FILENAME + 1)).pack()


def test_name_with_nul_is_rejected():
    with pytest.raises(ArgumentError):
        DirectoryBlock(name="a\0b").pack()


def test_non_ascii_name_round_trips():
    name = "résumé"
    assert DirectoryBlock.unpack(DirectoryBlock(name=name).pack()).name == name


def test_too_many_direct_blocks_raises_limit():
    with pytest.raises(LimitError):
        FileBlock(name="f", direct_blocks=[1] * (DIRECT_BLOCKS + 1)).pack()


def test_too_many_directory_entries_raises_limit():
    with pytest.raises(LimitError):
        DirectoryBlock(name="d", content_dnodes=[1] * (MAX_DIR_CONTENTS + 1)).pack()


def test_negative_block_number_is_rejected():
    with pytest.raises(ArgumentError):
        FileBlock(name="f", size=-1).pack()


@pytest.mark.parametrize("size", [0, 100, BLOCK_SIZE - 1, BLOCK_SIZE + 1])
def test_unpack_wrong_size_raises(size):
    with pytest.raises(ArgumentError):
        FileBlock.unpack(bytes(size))
    with pytest.raises(ArgumentError):
        Superblock.unpack(bytes(size))


def test_indirect_round_trip():
    entries = list(range(1, 11))
    data = pack_indirect(entries)
    assert len(data) == BLOCK_SIZE
    restored = unpack_indirect(data)
    assert len(restored) == INDIRECT_BLOCK_COUNT
    assert restored[:10] == entries
    assert set(restored[10:]) == {0}


def test_indirect_too_many_entries():
    with pytest.raises(LimitError):
        pack_indirect([1] * (INDIRECT_BLOCK_COUNT + 1))


def test_stat_defaults():
    stat = Stat(type=EntityType.FILE, name="f", creation_date=1, size=2)
    assert (stat.parent, stat.dnode) == (0, 0)