"""classloom: PlantUML class diagrams from ObjectScript class hierarchies."""

__version__ = "0.1.0"
