"""
Custom program wizard.

Collects intake data for a bespoke program over a branching sequence of
steps:

    1. delivery type (online / in-person)
    2. program category (sport performance / fitness & wellness)
    3. demographics (age, height, weight, sessions, days, time)
    4. category specifics (sport + performance goals, or health history +
       fitness goals)
    5. equipment access, online delivery only

In-person programs submit from step 4; online programs from step 5. Going
back never clears answers, so a user can change an early choice and keep
what they already typed.

The wizard is pure state; it makes no network calls. Its output is the
body of an enroll request.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .models import CUSTOM_PROGRAM_ID


DELIVERY_TYPES = ("online", "in-person")
PROGRAM_CATEGORIES = ("sport-performance", "fitness-wellness")
EQUIPMENT_ACCESS = ("gym", "home", "none")

PERFORMANCE_GOALS = ("Agility", "Endurance", "Speed", "Strength", "Coordination", "Other")
FITNESS_GOALS = ("Fat Loss", "Endurance", "Hypertrophy", "Maintenance", "Other")
HOME_EQUIPMENT = (
    "Dumbbells",
    "Barbells",
    "Kettlebells",
    "Resistance Bands",
    "Pull-up Bar",
    "Bike",
    "Treadmill",
    "Yoga Mat",
)

DEFAULT_PROGRAM_NAME = "Custom Program"


class WizardError(ValueError):
    """Raised when a wizard transition or answer is not allowed."""
    pass


def _toggle(values: list[str], value: str) -> None:
    if value in values:
        values.remove(value)
    else:
        values.append(value)


@dataclass
class CustomProgramAnswers:
    """Everything the wizard collects. Free-text inputs are kept as strings."""
    name: str = ""
    delivery_type: str = ""
    program_category: str = ""

    # Step 3
    age: str = ""
    height: str = ""
    weight: str = ""
    sessions_per_week: str = ""
    days_per_week: str = ""
    time_available: str = ""

    # Step 4, sport performance
    sport: str = ""
    injury_history: str = ""
    performance_goals: list[str] = field(default_factory=list)

    # Step 4, fitness & wellness
    health_history: str = ""
    fitness_goals: list[str] = field(default_factory=list)
    other_information: str = ""

    # Step 5
    equipment_access: str = ""
    gym_name: str = ""
    home_equipment: list[str] = field(default_factory=list)

    def to_customization(self) -> dict[str, Any]:
        """Every collected field under the camelCase keys the server stores."""
        return {
            "name": self.name,
            "deliveryType": self.delivery_type,
            "programCategory": self.program_category,
            "age": self.age,
            "height": self.height,
            "weight": self.weight,
            "sessionsPerWeek": self.sessions_per_week,
            "daysPerWeek": self.days_per_week,
            "timeAvailable": self.time_available,
            "sport": self.sport,
            "injuryHistory": self.injury_history,
            "performanceGoals": list(self.performance_goals),
            "healthHistory": self.health_history,
            "fitnessGoals": list(self.fitness_goals),
            "otherInformation": self.other_information,
            "equipmentAccess": self.equipment_access,
            "gymName": self.gym_name,
            "homeEquipment": list(self.home_equipment),
        }


class CustomProgramWizard:
    """
    Step counter plus answers, with a forward guard per step.

    Callers set answers through the setters (which reject values outside
    the fixed option sets) or directly on `answers` for free text, then
    call advance(). advance() refuses to move past a step whose guard
    fails, the same way the form keeps its Next button disabled.
    """

    def __init__(self, answers: Optional[CustomProgramAnswers] = None):
        self.answers = answers or CustomProgramAnswers()
        self.step = 1

    # --- choices ---------------------------------------------------------

    def set_delivery_type(self, delivery_type: str) -> None:
        if delivery_type not in DELIVERY_TYPES:
            raise WizardError(f"Unknown delivery type: {delivery_type}")
        self.answers.delivery_type = delivery_type
        # Online has one more step than in-person; stay within the new range
        self.step = min(self.step, self.final_step)

    def set_program_category(self, category: str) -> None:
        if category not in PROGRAM_CATEGORIES:
            raise WizardError(f"Unknown program category: {category}")
        self.answers.program_category = category

    def set_equipment_access(self, access: str) -> None:
        if access not in EQUIPMENT_ACCESS:
            raise WizardError(f"Unknown equipment access: {access}")
        self.answers.equipment_access = access

    def toggle_performance_goal(self, goal: str) -> None:
        _toggle(self.answers.performance_goals, goal)

    def toggle_fitness_goal(self, goal: str) -> None:
        _toggle(self.answers.fitness_goals, goal)

    def toggle_home_equipment(self, item: str) -> None:
        _toggle(self.answers.home_equipment, item)

    # --- navigation ------------------------------------------------------

    def total_steps(self) -> int:
        if self.answers.program_category in PROGRAM_CATEGORIES:
            if self.answers.delivery_type == "in-person":
                return 4
            if self.answers.delivery_type == "online":
                return 5
        return 2

    @property
    def final_step(self) -> int:
        """Step that submits: 5 for online delivery, 4 otherwise."""
        return 5 if self.answers.delivery_type == "online" else 4

    def _guard(self, step: int) -> bool:
        answers = self.answers
        guards: dict[int, Callable[[], bool]] = {
            1: lambda: bool(answers.delivery_type),
            2: lambda: bool(answers.program_category),
            3: lambda: bool(answers.age and answers.height and answers.weight),
            4: self._category_step_complete,
            5: lambda: bool(answers.equipment_access),
        }
        check = guards.get(step)
        return bool(check and check())

    def _category_step_complete(self) -> bool:
        answers = self.answers
        if answers.program_category == "sport-performance":
            return bool(answers.sport) and len(answers.performance_goals) > 0
        if answers.program_category == "fitness-wellness":
            return len(answers.fitness_goals) > 0
        return False

    def can_advance(self) -> bool:
        """Whether the current step's guard holds and a next step exists."""
        return self.step < self.final_step and self._guard(self.step)

    def advance(self) -> int:
        if self.step >= self.final_step:
            raise WizardError("Already on the final step")
        if not self._guard(self.step):
            raise WizardError(f"Step {self.step} is incomplete")
        self.step += 1
        return self.step

    def back(self) -> int:
        if self.step > 1:
            self.step -= 1
        return self.step

    # --- submission ------------------------------------------------------

    @property
    def ready_to_submit(self) -> bool:
        return self.step == self.final_step and self._guard(self.step)

    def build_enrollment_request(self) -> dict[str, Any]:
        """Body for POST /programs/enroll."""
        if not self.ready_to_submit:
            raise WizardError("Custom program is not ready to submit")
        return {
            "programId": CUSTOM_PROGRAM_ID,
            "programName": self.answers.name.strip() or DEFAULT_PROGRAM_NAME,
            "customization": self.answers.to_customization(),
        }

    def reset(self) -> None:
        self.answers = CustomProgramAnswers()
        self.step = 1
