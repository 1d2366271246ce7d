# ABOUTME: Normalization and merging of command-line argument vectors
# ABOUTME: Purely syntactic: a token is a value when it does not start with '-'

# ABOUTME: Prefixes and separator that shape a flag token
FLAG_PREFIX_LONG = "--"
FLAG_PREFIX_SHORT = "-"
FLAG_VALUE_SEPARATOR = "="


def _is_flag(token: str) -> bool:
    return token.strip().startswith(FLAG_PREFIX_SHORT)


def _is_short_cluster(token: str) -> bool:
    """True for '-xyz' style tokens: short prefix, more than one letter, no value."""
    return (
        token.startswith(FLAG_PREFIX_SHORT)
        and not token.startswith(FLAG_PREFIX_LONG)
        and len(token) > 2
        and FLAG_VALUE_SEPARATOR not in token
    )


def normalize_args(raw_args: list[str]) -> list[str]:
    """Normalize flag tokens, dropping positional arguments.

    ABOUTME: --flag value -> --flag=value, -f value -> -f=value
    ABOUTME: --flag=value is kept as-is, -xyz expands to -x -y -z

    Args:
        raw_args: Tokens as received on the command line

    Returns:
        Normalized flag tokens in input order

    Examples:
        >>> normalize_args(["--config", "dev.toml", "pos"])
        ['--config=dev.toml']
        >>> normalize_args(["-xyz"])
        ['-x', '-y', '-z']
    """
    normalized: list[str] = []
    count = len(raw_args)
    i = 0

    while i < count:
        arg = raw_args[i].strip()
        i += 1

        # Values are consumed by look-ahead, so a bare non-flag is positional.
        if not _is_flag(arg):
            continue

        if _is_short_cluster(arg):
            normalized.extend(f"{FLAG_PREFIX_SHORT}{letter}" for letter in arg[1:])
            continue

        if FLAG_VALUE_SEPARATOR in arg:
            normalized.append(arg)
            continue

        if i < count and not _is_flag(raw_args[i]):
            arg = f"{arg}{FLAG_VALUE_SEPARATOR}{raw_args[i].strip()}"
            i += 1
        normalized.append(arg)

    return normalized


def process_all_args(raw_args: list[str]) -> list[str]:
    """Normalize flags while keeping positional arguments in their original order.

    Examples:
        >>> process_all_args(["--flag", "value", "pos1", "pos2"])
        ['--flag=value', 'pos1', 'pos2']
        >>> process_all_args(["/path/to/dir", "--verbose"])
        ['/path/to/dir', '--verbose']
    """
    result: list[str] = []
    count = len(raw_args)
    i = 0

    while i < count:
        arg = raw_args[i].strip()
        i += 1

        if not _is_flag(arg):
            result.append(arg)
            continue

        group = [arg]
        # Clusters and flags with an embedded value never take the next token.
        if not _is_short_cluster(arg) and FLAG_VALUE_SEPARATOR not in arg and i < count:
            following = raw_args[i].strip()
            if not _is_flag(following):
                group.append(following)
                i += 1

        result.extend(normalize_args(group))

    return result


def remove_matching_flags(args: list[str], names: list[str]) -> list[str]:
    """Drop tokens equal to one of names, or starting with '<name>='. Order is kept."""
    remove = set(names)
    return [
        arg
        for arg in args
        if not any(arg == name or arg.startswith(name + FLAG_VALUE_SEPARATOR) for name in remove)
    ]


def _arg_key(arg: str) -> str:
    key, _, _ = arg.partition(FLAG_VALUE_SEPARATOR)
    return key.strip()


def merge_args(a: list[str], b: list[str]) -> list[str]:
    """Merge b into a, with b winning on key collisions.

    ABOUTME: Keeps a's order, replacing colliding entries in place
    ABOUTME: Then appends b's new keys in b's order
    ABOUTME: Key is the text before the first '=', so --flag and --flag=v collide

    Examples:
        >>> merge_args(["--config=dev.toml", "--verbose"], ["--config=prod.toml"])
        ['--config=prod.toml', '--verbose']
    """
    if not b:
        return list(a)
    if not a:
        return list(b)

    overrides: dict[str, str] = {}
    for arg in b:
        overrides[_arg_key(arg)] = arg

    result: list[str] = []
    processed: set[str] = set()

    for arg in a:
        key = _arg_key(arg)
        result.append(overrides.get(key, arg))
        processed.add(key)

    for arg in b:
        if _arg_key(arg) not in processed:
            result.append(arg)

    return result
