"""Grid components: codec, paste parser, undo stack, selection and view."""
