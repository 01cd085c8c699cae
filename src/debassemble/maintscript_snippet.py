import re
from typing import Dict, Mapping, Optional, Literal

from debassemble.autoscripts import AUTOSCRIPTS
from debassemble.exceptions import (
    AutoscriptSubstitutionError,
    MissingDebhelperTokenError,
    UnknownAutoscriptError,
    DebassembleFSError,
)
from debassemble.listener import Listener
from debassemble.packager_provided_files import pkgfile
from debassemble.version import __version__

STD_CONTROL_SCRIPTS = (
    "postinst",
    "preinst",
    "prerm",
    "postrm",
)
# Scripts that tear things down run the most recently added snippet first
_PREPEND_SCRIPTS = frozenset({"prerm", "postrm"})

DEBHELPER_TOKEN = "#DEBHELPER#"
TOOL_WITH_VERSION = f"debassemble/{__version__}"
_PLACEHOLDER = re.compile(r"#([A-Z][A-Z0-9_]*)#")

# Maps "<package>.<script>.debhelper" (or ".service") to accumulated shell text
# and, after `apply_maintscript_fragments`, the script name to the final script.
ScriptFragments = Dict[str, str]
SnippetOrder = Optional[Literal["service"]]


def fragment_key(package: str, script: str, snippet_order: SnippetOrder = None) -> str:
    suffix = "debhelper" if snippet_order is None else snippet_order
    return f"{package}.{script}.{suffix}"


def render_autoscript(template_name: str, substitutions: Mapping[str, str]) -> str:
    try:
        snippet = AUTOSCRIPTS[template_name]
    except KeyError:
        raise UnknownAutoscriptError(
            f'There is no autoscript named "{template_name}"', template_name
        ) from None
    for key, value in substitutions.items():
        snippet = snippet.replace(f"#{key}#", value)
    missing = sorted(set(_PLACEHOLDER.findall(snippet)))
    if missing:
        raise AutoscriptSubstitutionError(
            f'The autoscript "{template_name}" needs a value for: {", ".join(missing)}',
            template_name,
        )
    return snippet


def autoscript(
    fragments: ScriptFragments,
    package: str,
    script: str,
    template_name: str,
    substitutions: Mapping[str, str],
    service_order: bool = False,
    listener: Optional[Listener] = None,
) -> None:
    """Render an autoscript and add it to the fragments of a maintainer script

    The rendered block is wrapped in the "Automatically added by" marker
    lines.  For `prerm` and `postrm` the block is put before anything added
    earlier, for all other scripts after it.
    """
    if listener is not None:
        listener.info(
            f"Maintainer script {script} will be augmented with autoscript {template_name}"
        )
    block = (
        f"# Automatically added by {TOOL_WITH_VERSION}\n"
        + render_autoscript(template_name, substitutions)
        + "# End automatically added section\n"
    )
    key = fragment_key(package, script, "service" if service_order else None)
    existing = fragments.get(key, "")
    if script in _PREPEND_SCRIPTS:
        fragments[key] = block + existing
    else:
        fragments[key] = existing + block


def generated_script_content(
    fragments: ScriptFragments,
    package: str,
    script: str,
) -> str:
    generic = fragments.get(fragment_key(package, script), "")
    service = fragments.get(fragment_key(package, script, "service"), "")
    if script in _PREPEND_SCRIPTS:
        return service + generic
    return generic + service


def _read_user_script(path: str) -> str:
    try:
        with open(path, "rt", encoding="utf-8") as fd:
            return fd.read()
    except OSError as e:
        raise DebassembleFSError(
            f"Unable to read the maintainer script {path}: {e.strerror}", path
        ) from e


def apply_maintscript_fragments(
    user_scripts_dir: Optional[str],
    fragments: ScriptFragments,
    package: str,
    unit_name: Optional[str] = None,
    listener: Optional[Listener] = None,
) -> Dict[str, bytes]:
    """Produce the final preinst, postinst, prerm and postrm scripts

    A user provided script (looked up in `user_scripts_dir` like debhelper
    looks up `debian/<package>.postinst`) gets its `#DEBHELPER#` token replaced
    by the generated snippets.  Without a user script, the generated snippets
    become a script of their own.  Scripts with neither are omitted from the
    result.
    """
    scripts: Dict[str, bytes] = {}
    for script in STD_CONTROL_SCRIPTS:
        generated = generated_script_content(fragments, package, script)
        user_script = None
        if user_scripts_dir is not None:
            user_script = pkgfile(user_scripts_dir, package, package, script, unit_name)

        if user_script is not None:
            user_text = _read_user_script(user_script)
            if DEBHELPER_TOKEN not in user_text:
                if generated:
                    raise MissingDebhelperTokenError(
                        f"The maintainer script {user_script} has no {DEBHELPER_TOKEN} token,"
                        f" so the generated {script} snippets cannot be inserted",
                        user_script,
                    )
                text = user_text
            else:
                if listener is not None:
                    listener.info(f"Augmenting maintainer script {script}")
                text = user_text.replace(DEBHELPER_TOKEN, generated)
        elif generated:
            if listener is not None:
                listener.info(f"Generating maintainer script {script}")
            text = "#!/bin/sh\nset -e\n" + generated
        else:
            continue

        fragments[script] = text
        scripts[script] = text.encode("utf-8")
    return scripts
