"""ergoquipt_reports - Reporting- und Export-Client für die Ergoquipt-Laborkonsole.

Dieses Paket ermöglicht das Abfragen von Tympani- und HRV-Aufnahmen über
beliebige Zeiträume, die Aggregation (global, pro Operator, Zeitreihe) sowie
Einzel- und Bulk-Exporte.
"""

__all__ = ["__version__"]

__version__ = "0.3.0"
