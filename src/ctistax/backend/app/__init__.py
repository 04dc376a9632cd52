"""Application layer of the tax calculation and penalty engine."""
