"""Event store adapters: table schema, identifier codecs, row mapping and stores."""
