"""Password strength scoring and acceptance gate.

Score and acceptability are reported independently: the score is advisory
feedback for the user, the gate is what registration and password changes
enforce. A password can score poorly (repeats, common words) and still pass
the gate, and vice versa.
"""

import re

from auth.types import PasswordStrength, StrengthTier

MIN_LENGTH = 8
LONG_LENGTH = 12
MAX_SCORE = 5
REQUIRED_CLASSES = 3

SYMBOLS = '!@#$%^&*(),.?":{}|<>'

COMMON_PATTERNS = ("password", "123456", "qwerty", "admin", "letmein")

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")
_SYMBOL = re.compile("[" + re.escape(SYMBOLS) + "]")
_REPEAT = re.compile(r"(.)\1{2,}")


def _tier_for(score: int) -> StrengthTier:
    if score <= 1:
        return StrengthTier.VERY_WEAK
    if score == 2:
        return StrengthTier.WEAK
    if score == 3:
        return StrengthTier.MEDIUM
    if score == 4:
        return StrengthTier.STRONG
    return StrengthTier.VERY_STRONG


def evaluate_password(password: str) -> PasswordStrength:
    """Score a candidate password and decide whether it is acceptable.

    Scoring:
    - +1 for length >= 8, +1 for length >= 12
    - +1 each for uppercase, lowercase, digit, symbol
    - -1 for any character repeated 3+ times in a row
    - -2 (floor 0) for containing a common password fragment

    Acceptance requires length >= 8 and at least 3 of the 4 character classes.
    """
    if len(password) < MIN_LENGTH:
        return PasswordStrength(
            acceptable=False,
            score=0,
            tier=StrengthTier.VERY_WEAK,
            hints=[f"Password must be at least {MIN_LENGTH} characters long"],
        )

    hints: list[str] = []
    score = 1
    if len(password) >= LONG_LENGTH:
        score += 1

    classes = {
        "uppercase": (bool(_UPPER.search(password)), "Include an uppercase letter"),
        "lowercase": (bool(_LOWER.search(password)), "Include a lowercase letter"),
        "digit": (bool(_DIGIT.search(password)), "Include a number"),
        "symbol": (bool(_SYMBOL.search(password)), "Include a special character"),
    }
    for present, hint in classes.values():
        if present:
            score += 1
        else:
            hints.append(hint)

    if _REPEAT.search(password):
        score -= 1
        hints.append("Avoid repeating the same character three or more times")

    lowered = password.lower()
    if any(pattern in lowered for pattern in COMMON_PATTERNS):
        score = max(0, score - 2)
        hints.append("Avoid common passwords and patterns")

    score = max(0, min(MAX_SCORE, score))

    class_count = sum(1 for present, _ in classes.values() if present)
    acceptable = class_count >= REQUIRED_CLASSES

    if not acceptable and not hints:
        hints.append(
            "Use at least 3 of: uppercase letters, lowercase letters, numbers, special characters"
        )

    return PasswordStrength(
        acceptable=acceptable,
        score=score,
        tier=_tier_for(score),
        hints=hints,
    )
