"""Robot motion planning: sequential Cartesian IK planner."""
