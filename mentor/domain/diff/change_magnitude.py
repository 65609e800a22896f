"""
Change magnitude estimation between two document snapshots.

Strips the common prefix and the common suffix of both strings and reports
the size of the larger of the two remaining middle regions. This runs in
linear time and approximates the size of the edited region, so a one
character fix inside a large file counts as 1 instead of the file length.

No alignment is attempted inside the middle region: a block that was moved
rather than edited is counted at its full size.
"""


def common_prefix_length(old: str, new: str) -> int:
    """Number of leading characters shared by both strings"""

    limit = min(len(old), len(new))
    index = 0
    while index < limit and old[index] == new[index]:
        index += 1
    return index


def common_suffix_length(old: str, new: str, limit: int) -> int:
    """Number of trailing characters shared by both strings, capped at limit"""

    count = 0
    old_last = len(old) - 1
    new_last = len(new) - 1
    while count < limit and old[old_last - count] == new[new_last - count]:
        count += 1
    return count


def change_magnitude(old: str, new: str) -> int:
    """
    Estimate how many characters changed between two snapshots.

    Args:
        old: Previously analyzed snapshot (may be empty)
        new: Incoming snapshot (may be empty)

    Returns:
        Non-negative size of the changed region
    """

    if old == new:
        return 0
    if not old:
        return len(new)
    if not new:
        return len(old)

    prefix_len = common_prefix_length(old, new)

    # Suffix may only use what the prefix left over, so the two never overlap
    suffix_limit = min(len(old), len(new)) - prefix_len
    suffix_len = common_suffix_length(old, new, suffix_limit)

    old_middle = len(old) - prefix_len - suffix_len
    new_middle = len(new) - prefix_len - suffix_len

    return max(old_middle, new_middle)
