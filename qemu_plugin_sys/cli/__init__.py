"""Command line for regenerating the per-revision plugin bindings.

``generate`` rewrites every ``bindings_v{N}.py`` and its ``.def`` export
table next to the installed package. ``versions`` shows the pinned QEMU
commits alongside what is already cached, and ``clean`` drops cached
source snapshots.
"""
