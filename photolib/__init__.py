"""photolib core package.

Modules:
- watchlist: Watched/ScanOnce/Excluded folder classification
- scanner: full tree scan and per-file reconciliation
- deletion: sweep for records whose files are gone
- monitor: Watchdog-based change capture and queue consumer
- service: task groups and lifecycle
- sidecar: legacy and native per-folder sidecar files
- metadata: embedded image metadata and field merging
- database, models, repository, migrations: the SQLite index
- config: INI parsing and config object
"""
