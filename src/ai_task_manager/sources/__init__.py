"""Template and command catalogs consumed by the installer.

Import from submodules:
- base: TemplateSource, CommandSource and their records
- bundled: DirectoryTemplateSource, DirectoryCommandSource (package data)
"""
