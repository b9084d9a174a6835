"""HTTP surface for triggering pipeline runs and inspecting source health."""
