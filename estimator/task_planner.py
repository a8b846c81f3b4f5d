"""Todo list planning from a requirements document."""

from typing import List, Tuple

from contracts import TodoItem

from .features import detect_features


BASELINE_TASKS: List[Tuple[str, str]] = [
    ("setup", "Project setup - layout, globals, config files"),
    ("ui-components", "Build reusable UI components (buttons, cards, inputs)"),
    ("page-structure", "Create page layouts and navigation"),
    ("features", "Implement core features and interactivity"),
    ("data-layer", "Add API routes and data handling"),
]

# (feature flag, todo id, task) added when the flag is detected
FEATURE_TASKS: List[Tuple[str, str, str]] = [
    ("authentication", "auth", "Implement authentication system"),
    ("database", "database", "Set up database integration"),
    ("payments", "payments", "Integrate payment processing"),
    ("file_upload", "uploads", "Add file upload functionality"),
    ("realtime", "realtime", "Add realtime updates and notifications"),
    ("dashboard", "dashboard", "Build dashboard and analytics views"),
]

TRAILING_TASKS: List[Tuple[str, str]] = [
    ("testing", "Test and verify all components"),
    ("polish", "Final polish and optimization"),
]


def generate_todo_from_prd(prd: str, total_iterations: int) -> List[TodoItem]:
    """Build the ordered todo list and spread it across the iteration budget.

    Target iteration is index * step + 1 clamped to total_iterations, where
    step is total_iterations // task_count but at least 1, so tasks never land
    beyond the budget and a short budget stacks the tail on the last iteration.
    """
    if total_iterations < 1:
        raise ValueError("total_iterations must be at least 1")

    features = detect_features(prd)
    templates = list(BASELINE_TASKS)
    for flag, todo_id, task in FEATURE_TASKS:
        if getattr(features, flag):
            templates.append((todo_id, task))
    templates.extend(TRAILING_TASKS)

    step = max(1, total_iterations // len(templates))
    return [
        TodoItem(
            id=todo_id,
            task=task,
            target_iteration=min(index * step + 1, total_iterations),
        )
        for index, (todo_id, task) in enumerate(templates)
    ]
