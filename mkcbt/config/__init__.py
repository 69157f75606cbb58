"""
Configuration Package for mkcbt.

This package centralizes all the static configuration settings for the application.
By separating configuration from the application logic, it becomes easier to manage
and modify parameters without changing the core code.

This package includes settings for:
- Logging format, output sentinel and sequence numbering.
- User-overridable paths for the external encoder and the work directory.
- The conversion target and the ustar archive layout.
"""
