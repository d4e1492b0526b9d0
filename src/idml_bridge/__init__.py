"""Package an open publishing document, convert its links and export IDML."""
