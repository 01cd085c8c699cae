import textwrap
from typing import Mapping

_CONFIGURE_CONDITION = (
    'if [ "$1" = "configure" ] || [ "$1" = "abort-upgrade" ]'
    ' || [ "$1" = "abort-deconfigure" ] || [ "$1" = "abort-remove" ] ; then\n'
)


def _snippet(text: str) -> str:
    return textwrap.dedent(text).lstrip("\n")


# Shell snippets from debhelper's autoscripts directory.  Placeholders have the
# form #NAME# and are replaced by `maintscript_snippet.autoscript()`.
AUTOSCRIPTS: Mapping[str, str] = {
    "postinst-init-tmpfiles": _CONFIGURE_CONDITION
    + _snippet(
        """\
        \t# In case this system is running systemd, we need to ensure that all
        \t# necessary tmpfiles (if any) are created before starting.
        \tif [ -d /run/systemd/system ] ; then
        \t\tsystemd-tmpfiles --create #TMPFILES# >/dev/null || true
        \tfi
        fi
        """
    ),
    "postinst-systemd-dont-enable": _CONFIGURE_CONDITION
    + _snippet(
        """\
        \tif deb-systemd-helper debian-installed '#UNITFILE#'; then
        \t\t# This will only remove masks created by d-s-h on package removal.
        \t\tdeb-systemd-helper unmask '#UNITFILE#' >/dev/null || true

        \t\tif deb-systemd-helper --quiet was-enabled '#UNITFILE#'; then
        \t\t\t# Create new symlinks, if any.
        \t\t\tdeb-systemd-helper enable '#UNITFILE#' >/dev/null || true
        \t\tfi
        \tfi

        \t# Update the statefile to add new symlinks (if any), which need to be cleaned
        \t# up on purge. Also remove old symlinks.
        \tdeb-systemd-helper update-state '#UNITFILE#' >/dev/null || true
        fi
        """
    ),
    "postinst-systemd-enable": _CONFIGURE_CONDITION
    + _snippet(
        """\
        \t# This will only remove masks created by d-s-h on package removal.
        \tdeb-systemd-helper unmask '#UNITFILE#' >/dev/null || true

        \t# was-enabled defaults to true, so new installations run enable.
        \tif deb-systemd-helper --quiet was-enabled '#UNITFILE#'; then
        \t\t# Enables the unit on first installation, creates new
        \t\t# symlinks on upgrades if the unit file has changed.
        \t\tdeb-systemd-helper enable '#UNITFILE#' >/dev/null || true
        \telse
        \t\t# Update the statefile to add new symlinks (if any), which need to be
        \t\t# cleaned up on purge. Also remove old symlinks.
        \t\tdeb-systemd-helper update-state '#UNITFILE#' >/dev/null || true
        \tfi
        fi
        """
    ),
    "postinst-systemd-restart": _CONFIGURE_CONDITION
    + _snippet(
        """\
        \tif [ -d /run/systemd/system ]; then
        \t\tsystemctl --system daemon-reload >/dev/null || true
        \t\tif [ -n "$2" ]; then
        \t\t\t_dh_action=#RESTART_ACTION#
        \t\telse
        \t\t\t_dh_action=start
        \t\tfi
        \t\tdeb-systemd-invoke $_dh_action #UNITFILES# >/dev/null || true
        \tfi
        fi
        """
    ),
    "postinst-systemd-restartnostart": _CONFIGURE_CONDITION
    + _snippet(
        """\
        \tif [ -d /run/systemd/system ]; then
        \t\tsystemctl --system daemon-reload >/dev/null || true
        \t\tif [ -n "$2" ]; then
        \t\t\tdeb-systemd-invoke #RESTART_ACTION# #UNITFILES# >/dev/null || true
        \t\tfi
        \tfi
        fi
        """
    ),
    "postinst-systemd-start": _CONFIGURE_CONDITION
    + _snippet(
        """\
        \tif [ -d /run/systemd/system ]; then
        \t\tsystemctl --system daemon-reload >/dev/null || true
        \t\tdeb-systemd-invoke start #UNITFILES# >/dev/null || true
        \tfi
        fi
        """
    ),
    "postrm-systemd": _snippet(
        """\
        if [ "$1" = "remove" ]; then
        \tif [ -x "/usr/bin/deb-systemd-helper" ]; then
        \t\tdeb-systemd-helper mask #UNITFILES# >/dev/null || true
        \tfi
        fi

        if [ "$1" = "purge" ]; then
        \tif [ -x "/usr/bin/deb-systemd-helper" ]; then
        \t\tdeb-systemd-helper purge #UNITFILES# >/dev/null || true
        \t\tdeb-systemd-helper unmask #UNITFILES# >/dev/null || true
        \tfi
        fi
        """
    ),
    "postrm-systemd-reload-only": _snippet(
        """\
        if [ -d /run/systemd/system ]; then
        \tsystemctl --system daemon-reload >/dev/null || true
        fi
        """
    ),
    "prerm-systemd": _snippet(
        """\
        if [ -d /run/systemd/system ]; then
        \tdeb-systemd-invoke stop #UNITFILES# >/dev/null || true
        fi
        """
    ),
    "prerm-systemd-restart": _snippet(
        """\
        if [ -d /run/systemd/system ] && [ "$1" = remove ]; then
        \tdeb-systemd-invoke stop #UNITFILES# >/dev/null || true
        fi
        """
    ),
}
