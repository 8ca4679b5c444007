"""LibCST-based record completion engine.

Provides:
- core: parse_file, parse_source utilities
- model: TypeIdentity, TypeRef, FieldDescriptor, Declaration
- index: load_project, ProjectIndex, resolve_target_types
- defaults: parse_default_specs, DefaultPolicy
- matcher: classify
- rewriter: complete
- transform: format_file
- printer: render
"""
