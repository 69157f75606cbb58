"""
This package contains the core domain models of mkcbt.

Modules:
    exceptions.py: Custom exception types. Every failure is fatal; the types
                   let the entry point report them as a single diagnostic.
    jobs.py: The `ConversionJob` model (copy or external transcode) and the
             zero-padded entry naming scheme.
    workspace.py: Unique file name generation and the `ScopedWorkDirectory`
                  that holds intermediate conversion outputs.
"""
