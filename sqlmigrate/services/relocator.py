"""Relocation of loose working files into a project folder structure."""

import fnmatch
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_RULES: Dict[str, List[str]] = {
    "scripts": ["*.py", "*.ps1", "*.sh", "*.sql"],
    "data": ["*.db", "*.sqlite", "*.sqlite3"],
    "exports": ["*.csv", "*.json"],
    "docs": ["*.md", "*.txt"],
}


@dataclass
class RelocationResult:
    """Outcome for one file."""
    source: Path
    destination: Optional[Path] = None
    moved: bool = False
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": str(self.source),
            "destination": str(self.destination) if self.destination else None,
            "moved": self.moved,
            "reason": self.reason,
        }


class FileRelocator:
    """
    Moves loose files from a working directory into project subfolders.

    Only regular files directly inside ``root`` are considered. Each file goes
    to the folder of the first rule whose pattern matches its name; files
    matching no rule stay where they are. Existing files are never overwritten.
    """

    def __init__(
        self,
        root: str,
        project_dir: str,
        rules: Optional[Dict[str, List[str]]] = None,
        dry_run: bool = False
    ):
        """
        Initialize the relocator.

        Args:
            root: Directory holding the loose files
            project_dir: Project folder (relative paths are resolved against root)
            rules: Folder name -> list of glob patterns, checked in order
            dry_run: Report planned moves without touching the filesystem
        """
        self.root = Path(root)
        project = Path(project_dir)
        self.project_dir = project if project.is_absolute() else self.root / project
        self.rules = rules if rules is not None else DEFAULT_RULES
        self.dry_run = dry_run

    def folder_for(self, filename: str) -> Optional[str]:
        """Return the target folder for a file name, or None if no rule matches."""
        for folder, patterns in self.rules.items():
            if any(fnmatch.fnmatch(filename.lower(), p.lower()) for p in patterns):
                return folder
        return None

    def plan(self) -> List[RelocationResult]:
        """Work out where every loose file would go."""
        results = []
        for path in sorted(self.root.iterdir()):
            if not path.is_file():
                continue

            folder = self.folder_for(path.name)
            if folder is None:
                results.append(RelocationResult(source=path, reason="no matching rule"))
                continue

            destination = self.project_dir / folder / path.name
            if destination.exists():
                results.append(RelocationResult(
                    source=path,
                    destination=destination,
                    reason="destination already exists",
                ))
                continue

            results.append(RelocationResult(source=path, destination=destination))
        return results

    def relocate(self) -> List[RelocationResult]:
        """
        Move the loose files according to the rules.

        Returns:
            One RelocationResult per loose file
        """
        if not self.root.is_dir():
            raise FileNotFoundError(f"Directory not found: {self.root}")

        results = self.plan()
        for result in results:
            if result.destination is None or result.reason:
                logger.debug(f"Leaving {result.source.name}: {result.reason}")
                continue

            if self.dry_run:
                result.reason = "dry run"
                logger.info(f"Would move {result.source} -> {result.destination}")
                continue

            result.destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(result.source), str(result.destination))
            result.moved = True
            logger.info(f"Moved {result.source} -> {result.destination}")

        moved = sum(1 for r in results if r.moved)
        logger.info(f"Relocated {moved} of {len(results)} file(s) into {self.project_dir}")
        return results
