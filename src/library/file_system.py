# src/library/file_system.py
from __future__ import annotations

import fnmatch
import glob
import logging
import os
from functools import cmp_to_key
from typing import Callable, Iterable, Optional

from library.metadata import read_track_number

logger = logging.getLogger(__name__)


def normalize_extensions(extensions: Iterable[str]) -> set[str]:
    return {"." + e.strip().lstrip(".").lower() for e in extensions if e.strip()}


def is_eligible(path: str, extensions: set[str]) -> bool:
    return os.path.splitext(path)[1].lower() in extensions


def get_all_folders(patterns: list[str], base_path: str = "") -> list[str]:
    """
    Resolves the configured source patterns to existing folders, in
    configuration order. Relative patterns are joined to base_path.
    """
    folders: list[str] = []
    seen: set[str] = set()
    for pattern in patterns:
        if not pattern:
            continue
        full = pattern if os.path.isabs(pattern) else os.path.join(base_path, pattern)
        for match in sorted(glob.glob(full)):
            match = os.path.abspath(match)
            if os.path.isdir(match) and match not in seen:
                seen.add(match)
                folders.append(match)
    return folders


def iter_audio_paths(folder: str, extensions: set[str]) -> list[str]:
    paths: list[str] = []
    if not folder or not os.path.isdir(folder):
        return paths
    for dirpath, _, filenames in os.walk(folder):
        for fn in filenames:
            full = os.path.join(dirpath, fn)
            if is_eligible(full, extensions):
                paths.append(full)
    return paths


def compare_folder_files(x: tuple[str, Optional[int]], y: tuple[str, Optional[int]]) -> int:
    x_path, x_track = x
    y_path, y_track = y

    # If either of the files has no track number, fall back to file names
    if x_track is None or y_track is None:
        x_name, y_name = os.path.basename(x_path), os.path.basename(y_path)
        return (x_name > y_name) - (x_name < y_name)

    return (x_track > y_track) - (x_track < y_track)


def get_all_folder_files(
    folder: str,
    extensions: set[str],
    track_number_of: Callable[[str], Optional[int]] = read_track_number,
) -> list[str]:
    """
    Eligible files directly inside folder, ordered by embedded track number,
    or by file name when any file lacks one.
    """
    try:
        names = os.listdir(folder)
    except OSError as e:
        logger.warning("Cannot list %s: %s", folder, e)
        return []

    files = [
        os.path.join(folder, fn)
        for fn in names
        if is_eligible(fn, extensions) and os.path.isfile(os.path.join(folder, fn))
    ]
    keyed = [(path, track_number_of(path)) for path in files]
    keyed.sort(key=cmp_to_key(compare_folder_files))
    return [path for path, _ in keyed]


def _search_glob(term: str) -> str:
    # A space matches space, dash, underscore or anything else
    return "*" + term.strip().lower().replace(" ", "*") + "*"


def search_for_folder(term: str, folders: list[str]) -> list[str]:
    if not term or not term.strip():
        return []
    pattern = _search_glob(term)

    matches: list[str] = []
    for source in folders:
        for dirpath, dirnames, _ in os.walk(source):
            for dn in dirnames:
                if fnmatch.fnmatchcase(dn.lower(), pattern):
                    matches.append(os.path.join(dirpath, dn))
    return matches


def search_for_file(term: str, folders: list[str], extensions: set[str]) -> list[str]:
    if not term or not term.strip():
        return []
    pattern = _search_glob(term)
    # Only filter by extension when the term doesn't already name one
    filter_ext = not is_eligible(term.strip(), extensions)

    matches: list[str] = []
    for source in folders:
        for dirpath, _, filenames in os.walk(source):
            for fn in filenames:
                if filter_ext:
                    stem, ext = os.path.splitext(fn)
                    if ext.lower() not in extensions or not fnmatch.fnmatchcase(stem.lower(), pattern):
                        continue
                elif not fnmatch.fnmatchcase(fn.lower(), pattern):
                    continue
                matches.append(os.path.join(dirpath, fn))
    return matches
