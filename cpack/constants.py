import struct


# Header layout (all integers little-endian)
#   0      4 bytes  magic, must be zero
#   4      u32      number of entries
#   8      N x (u32 offset, u32 length)
#   8+8N   8 bytes  terminator, must be zero
HEADER_MAGIC = b"\x00\x00\x00\x00"
HEADER_TERMINATOR = b"\x00" * 8

U32_STRUCT = struct.Struct("<I")
ENTRY_STRUCT = struct.Struct("<II")

HEADER_FIXED_SIZE = len(HEADER_MAGIC) + U32_STRUCT.size + len(HEADER_TERMINATOR)


def header_size(entry_count: int) -> int:
    return HEADER_FIXED_SIZE + entry_count * ENTRY_STRUCT.size
