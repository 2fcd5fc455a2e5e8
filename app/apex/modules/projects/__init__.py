"""
Projects module: delivery projects with multiple current statuses and a task board.
"""
