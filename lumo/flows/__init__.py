"""Turn orchestration: the LumoEngine and its node pipeline."""
