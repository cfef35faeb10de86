import os


def disambiguate_items(ambiguous_items: list[str]) -> list[str]:
    """
    Returns the shortest trailing part of each path that is still unique
    among the given paths, e.g. ["/a/x/Live", "/b/y/Live", "/c/Demo"] gives
    ["Demo", "x/Live", "y/Live"] (order follows resolution, not input).
    """
    working = [(os.path.dirname(p), os.path.basename(p)) for p in ambiguous_items]

    output: list[str] = []
    while working:
        groups: dict[str, list[tuple[str, str]]] = {}
        for item in working:
            groups.setdefault(item[1], []).append(item)

        dupes = []
        for name, items in groups.items():
            if len(items) == 1:
                output.append(name)
                continue
            for parent, tail in items:
                head = os.path.basename(parent)
                if not head:
                    # Ran out of path components; identical paths stay as they are.
                    output.append(tail)
                    continue
                dupes.append((os.path.dirname(parent), os.path.join(head, tail)))
        working = dupes

    return output


def get_track_uploader(path: str, base_path: str) -> str:
    """First folder below the base path, which is who uploaded the track."""
    working = path
    if base_path and working.startswith(base_path):
        working = working[len(base_path):]
    working = working.lstrip(os.sep)
    return working.split(os.sep)[0]


def display_name_for(path: str) -> str:
    return os.path.basename(path)
