"""
Library presets: hooks known to return stable references, keyed by the npm
package that provides them.

Presets are detected from the dependencies declared in the nearest
package.json and merged below the user's own configuration.

hookloop/src/hookloop/presets.py
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

__all__ = ["LibraryPreset", "LIBRARY_PRESETS", "find_package_json", "detect_presets", "merge_presets"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LibraryPreset:
    package: str
    stable_hooks: Tuple[str, ...] = ()
    unstable_hooks: Tuple[str, ...] = ()
    stable_hook_patterns: Tuple[str, ...] = ()


LIBRARY_PRESETS: Dict[str, LibraryPreset] = {
    preset.package: preset
    for preset in (
        LibraryPreset(
            "zustand",
            stable_hooks=("useStore", "useShallow"),
            stable_hook_patterns=(r"^use\w*Store$",),
        ),
        LibraryPreset(
            "expo-router",
            stable_hooks=(
                "useRouter",
                "useLocalSearchParams",
                "useGlobalSearchParams",
                "useSegments",
                "usePathname",
                "useNavigation",
                "useRootNavigationState",
            ),
        ),
        LibraryPreset(
            "react-router",
            stable_hooks=("useNavigate", "useParams", "useLocation", "useSearchParams", "useMatch", "useNavigation"),
        ),
        LibraryPreset(
            "react-router-dom",
            stable_hooks=("useNavigate", "useParams", "useLocation", "useSearchParams", "useMatch", "useNavigation"),
        ),
        LibraryPreset(
            "@tanstack/react-query",
            stable_hooks=("useQueryClient", "useQuery", "useInfiniteQuery", "useSuspenseQuery"),
        ),
        LibraryPreset("react-redux", stable_hooks=("useDispatch", "useSelector", "useStore")),
        LibraryPreset("react-i18next", stable_hooks=("useTranslation",)),
        LibraryPreset(
            "@react-navigation/native",
            stable_hooks=("useNavigation", "useRoute", "useIsFocused", "useTheme", "useNavigationState"),
        ),
        LibraryPreset("jotai", stable_hooks=("useAtom", "useAtomValue", "useSetAtom")),
    )
}

_DEPENDENCY_SECTIONS = ("dependencies", "devDependencies", "peerDependencies")


def find_package_json(start: Path) -> Optional[Path]:
    """Nearest package.json at or above ``start``, skipping node_modules."""
    current = Path(start).resolve()
    if current.is_file():
        current = current.parent
    while True:
        candidate = current / "package.json"
        if candidate.is_file() and "node_modules" not in current.parts:
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def detect_presets(start: Path) -> List[LibraryPreset]:
    """Presets for every known library declared in the nearest package.json."""
    package_json = find_package_json(start)
    if package_json is None:
        return []
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read {package_json}: {e}")
        return []
    declared = set()
    for section in _DEPENDENCY_SECTIONS:
        deps = data.get(section)
        if isinstance(deps, dict):
            declared.update(deps)
    presets = [LIBRARY_PRESETS[name] for name in sorted(declared) if name in LIBRARY_PRESETS]
    if presets:
        logger.debug(f"Library presets from {package_json}: {', '.join(p.package for p in presets)}")
    return presets


def merge_presets(presets: List[LibraryPreset]) -> Dict[str, List[str]]:
    """Combine presets into ``stable_hooks``/``unstable_hooks``/``stable_hook_patterns`` lists."""
    merged: Dict[str, List[str]] = {"stable_hooks": [], "unstable_hooks": [], "stable_hook_patterns": []}
    for preset in presets:
        for key in merged:
            for value in getattr(preset, key):
                if value not in merged[key]:
                    merged[key].append(value)
    return merged
