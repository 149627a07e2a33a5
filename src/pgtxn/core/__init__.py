"""Result decoding and transaction lifecycle."""
