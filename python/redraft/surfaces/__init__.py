from redraft.surfaces.base import EditingSurface, Mark
from redraft.surfaces.docx import DocxSurface
from redraft.surfaces.memory import InMemorySurface

__all__ = ["EditingSurface", "Mark", "InMemorySurface", "DocxSurface"]
