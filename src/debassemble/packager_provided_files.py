import os
from typing import Optional, List


def pkgfile_candidates(
    main_package: str,
    package: str,
    filename: str,
    unit_name: Optional[str] = None,
) -> List[str]:
    """Basenames to look for, most specific first

    With `unit_name`, `debian/<package>.<unit_name>.service` is preferred over
    `debian/<package>.service` (like `dh_installsystemd --name`).  The forms
    without a package prefix only apply when `package` is the main package, so
    `debian/service` is never picked up for the `<package>@` template variant.
    """
    candidates = []
    if unit_name is not None:
        candidates.append(f"{package}.{unit_name}.{filename}")
    candidates.append(f"{package}.{filename}")
    if package == main_package:
        if unit_name is not None:
            candidates.append(f"{unit_name}.{filename}")
        candidates.append(filename)
    return candidates


def pkgfile(
    directory: str,
    main_package: str,
    package: str,
    filename: str,
    unit_name: Optional[str] = None,
) -> Optional[str]:
    for candidate in pkgfile_candidates(main_package, package, filename, unit_name):
        path = os.path.join(directory, candidate)
        if os.path.isfile(path):
            return path
    return None
