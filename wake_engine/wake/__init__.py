"""Wake-phrase matching."""
