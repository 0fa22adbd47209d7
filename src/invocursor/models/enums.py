"""Enumeration definitions for Invocursor.

This module contains standard Enum classes used across the application to
ensure consistency in typing and values for conversation responses, plan
steps, execution modes and plan-run states.
"""

from enum import Enum


class ResponseType(str, Enum):
    """Defines the type of a conversational response.

    Attributes:
        QUESTION: The assistant needs more information (or a password).
        EXPLANATION: Informational answer, no action is performed.
        ACTION: A plan of DOM steps the widget should perform.
        STATUS: A report on the current state of the page.
        ERROR: The request could not be handled.
        ANALYTICS_DOWNLOAD: An analytics workbook ready for download.
    """

    QUESTION = "question"
    EXPLANATION = "explanation"
    ACTION = "action"
    STATUS = "status"
    ERROR = "error"
    ANALYTICS_DOWNLOAD = "analytics_download"


class StepKind(str, Enum):
    """Defines the kind of an atomic DOM step.

    Attributes:
        NAVIGATE: Click a page-switch control identified by its page name.
        TOGGLE: Bring a checkbox-like control to a desired checked state.
        TYPE: Type text into an input one character at a time.
        CLICK: Click an element.
        SELECT: Set the value of a select element.
    """

    NAVIGATE = "navigate"
    TOGGLE = "toggle"
    TYPE = "type"
    CLICK = "click"
    SELECT = "select"


class ExecutionMode(str, Enum):
    """Defines the cadence used to run a plan.

    Attributes:
        FAST: "Do it for me". Steps run back-to-back without pausing.
        GUIDED: "Teach me". Each step is explained and the run pauses for
            the user to continue.
    """

    FAST = "fast"
    GUIDED = "guided"


class RunState(str, Enum):
    """Defines the lifecycle state of a plan run.

    Attributes:
        IDLE: No plan is active.
        RUNNING: Steps are executing (fast mode or a guided drain).
        STEP_ACTIVE: A single guided step is executing.
        AWAITING_CONTINUE: A guided run is paused between steps.
        COMPLETE: The last run finished; a new run may start.
    """

    IDLE = "idle"
    RUNNING = "running"
    STEP_ACTIVE = "step_active"
    AWAITING_CONTINUE = "awaiting_continue"
    COMPLETE = "complete"


class RunEventKind(str, Enum):
    """Defines the kinds of user-visible events a plan run emits."""

    PLAN = "plan"
    EXPLANATION = "explanation"
    STEP_STARTED = "step_started"
    STEP_FINISHED = "step_finished"
    AWAITING_CONTINUE = "awaiting_continue"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"
    COMPLETE = "complete"
    TIP = "tip"
    FAILED = "failed"
