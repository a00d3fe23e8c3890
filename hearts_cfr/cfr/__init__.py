"""Deep CFR traversal, batched inference, sample generation and training."""
