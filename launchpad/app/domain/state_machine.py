# Copyright 2026 icecake0141
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# This file was created or modified with the assistance of an AI (Large Language Model).
# Review required for correctness, security, and licensing.
"""Lifecycle of build and update-checkout jobs.

A job starts in progress, ends succeeded or failed, and is retired once it
falls out of the finished-job window. Retired jobs can no longer be attached.
"""

from .models import JobEvent, JobState, JobTransition


class JobStateMachine:
    """Transition table shared by both job kinds."""

    _transitions = {
        (JobState.ABSENT, JobEvent.START): JobState.IN_PROGRESS,
        (JobState.IN_PROGRESS, JobEvent.SUCCEED): JobState.SUCCEEDED,
        (JobState.IN_PROGRESS, JobEvent.FAIL): JobState.FAILED,
        (JobState.SUCCEEDED, JobEvent.RETIRE): JobState.ABSENT,
        (JobState.FAILED, JobEvent.RETIRE): JobState.ABSENT,
    }

    def can_transition(self, state: JobState, event: JobEvent) -> bool:
        return (state, event) in self._transitions

    def transition(self, state: JobState, event: JobEvent) -> JobTransition:
        """Look up the move for event; a job can never finish twice."""
        target = self._transitions.get((state, event))
        if target is None:
            raise ValueError(f"Job in state {state.value} cannot {event.value}")
        return JobTransition(current=state, event=event, next_state=target)

    def next_state(self, state: JobState, event: JobEvent) -> JobState:
        return self.transition(state, event).next_state
