"""
String distance primitives used by the fuzzy locator stage.
"""

from diff_match_patch import diff_match_patch


def levenshtein(a: str, b: str) -> int:
    """
    Classic edit distance: single-character insert, delete and substitute, each cost 1.
    Keeps only two rows of the DP table.
    """
    if a == b:
        return 0
    # Iterate over the longer string so the row is as short as possible
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,  # deletion
                    current[j - 1] + 1,  # insertion
                    previous[j - 1] + (char_a != char_b),  # substitution
                )
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """
    1 - distance / max(len). Symmetric, in [0, 1].
    similarity("", "") == 1 and similarity("", "x") == 0.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def describe_difference(expected: str, actual: str, limit: int = 5) -> str:
    """
    Human-readable summary of how `actual` differs from `expected`.
    Used when a located span does not read back as the requested target.
    """
    dmp = diff_match_patch()
    diffs = dmp.diff_main(expected, actual)
    dmp.diff_cleanupSemantic(diffs)

    differences = []
    offset = 0
    for op, text in diffs:
        if op == 0:  # Equal
            offset += len(text)
        elif op == -1:  # Delete
            differences.append(f"@{offset} missing {text!r}")
            offset += len(text)
        elif op == 1:  # Insert
            differences.append(f"@{offset} extra {text!r}")

    if len(expected) != len(actual):
        differences.append(f"length {len(expected)} vs {len(actual)}")

    if not differences:
        return "no difference"

    summary = "; ".join(differences[:limit])
    if len(differences) > limit:
        summary += "; ..."
    return summary
