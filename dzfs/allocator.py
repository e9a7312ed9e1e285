"""Free block bitmap management.

The bitmap blocks start at block 2, right after the bootloader and the
superblock. A set bit marks a free block and a clear bit a used one.
"""

from __future__ import annotations

from .blockdev import BlockDevice
from .errors import DiskFullError, DiskIOError
from .layout import BITSET_COVERED_BLOCKS, BLOCK_SIZE

FIRST_BITMAP_BLOCK = 2


def _bit_position(bitmap: bytearray, index: int) -> tuple[int, int] | None:
    byte_index, bit_index = divmod(index, 8)
    if not 0 <= byte_index < len(bitmap):
        return None
    return byte_index, bit_index


def bitmap_set(bitmap: bytearray, index: int) -> None:
    """Set bit ``index`` of ``bitmap``; indices past its end are ignored."""
    position = _bit_position(bitmap, index)
    if position is not None:
        byte_index, bit_index = position
        bitmap[byte_index] |= 1 << bit_index


def bitmap_clear(bitmap: bytearray, index: int) -> None:
    """Clear bit ``index`` of ``bitmap``; indices past its end are ignored."""
    position = _bit_position(bitmap, index)
    if position is not None:
        byte_index, bit_index = position
        bitmap[byte_index] &= ~(1 << bit_index) & 0xFF


def bitmap_blocks_for(total_blocks: int) -> int:
    """Return how many bitmap blocks are needed to cover ``total_blocks``."""
    return (total_blocks + BITSET_COVERED_BLOCKS - 1) // BITSET_COVERED_BLOCKS


def bitmap_block_index(block: int) -> int:
    """Return the disk block that holds the bitmap bit of ``block``."""
    return block // 8 // BLOCK_SIZE + FIRST_BITMAP_BLOCK


def _lowest_set_bit(value: int) -> int:
    return (value & -value).bit_length() - 1


def _find_free(bitmap: bytes, bitmap_number: int) -> int:
    for byte_index, value in enumerate(bitmap[:BLOCK_SIZE]):
        if value:
            return (
                bitmap_number * BITSET_COVERED_BLOCKS
                + byte_index * 8
                + _lowest_set_bit(value)
            )
    return 0


def allocate_block(device: BlockDevice, free_bitmap_blocks: int) -> int:
    """Mark the first free block as used and return its number.

    Raises DiskFullError when no block is free.
    """
    allocated = 0
    for bitmap_number in range(free_bitmap_blocks):
        bitmap = device.read_block(bitmap_number + FIRST_BITMAP_BLOCK)
        allocated = _find_free(bitmap, bitmap_number)
        if allocated:
            break
    if not allocated:
        raise DiskFullError()
    holder = bitmap_block_index(allocated)
    bitmap = bytearray(device.read_block(holder))
    bitmap_clear(bitmap, allocated % BITSET_COVERED_BLOCKS)
    device.write_block(holder, bytes(bitmap))
    return allocated


def free_block(device: BlockDevice, block: int) -> None:
    """Mark ``block`` as free again."""
    holder = bitmap_block_index(block)
    bitmap = bytearray(device.read_block(holder))
    bitmap_set(bitmap, block % BITSET_COVERED_BLOCKS)
    device.write_block(holder, bytes(bitmap))


def count_free_blocks(device: BlockDevice, free_bitmap_blocks: int) -> int:
    """Count the free blocks; bitmap blocks that cannot be read are skipped."""
    total = 0
    for bitmap_number in range(free_bitmap_blocks):
        try:
            bitmap = device.read_block(bitmap_number + FIRST_BITMAP_BLOCK)
        except DiskIOError:
            continue
        total += sum(value.bit_count() for value in bitmap)
    return total