#!/usr/bin/env python3
"""
Railway Deadlock Manager
Main entry point for running scenarios against the allocation ledger.

Applies a scenario's actions (requests, recovery, checkpoints, detection)
in order and logs every decision.
"""

import argparse
import sys
from typing import Any, Dict, List, Optional, Tuple

from models.allocation_state import AllocationState, ConfigurationError
from models.checkpoint import CheckpointStore
from utils.scenario_loader import (
    ScenarioLoadError,
    get_scenario_description,
    load_scenario,
    random_scenario,
    sample_scenario,
)
from utils.logger import SimulatorLogger
from utils.dot_export import export_dot
from algorithms.avoidance import handle_request
from algorithms.detection import build_wait_for_graph, detect_deadlock
from algorithms.recovery import preempt_resources, recover_from_deadlock, terminate_consumer
from analysis.events import EventLog, EventType, SimulationEvent


def run_simulation(
    state: AllocationState,
    actions: List[Dict[str, Any]],
    verbose: bool = False,
    log_file: Optional[str] = None,
    auto_checkpoint: bool = True,
    store: Optional[CheckpointStore] = None,
    export_path: Optional[str] = None
) -> Tuple[AllocationState, EventLog]:
    """
    Apply `actions` to `state` in order.

    Action types:
    - request   {consumer, units}: Banker's request
    - terminate {consumer}: forced full release
    - preempt   {consumer, units}: partial forced release
    - save      {label}: checkpoint the ledger
    - restore   {slot}: replace the ledger with a checkpoint
    - detect: wait-for cycle search plus Banker's check
    - recover   {strategy}: terminate victims until no cycle remains

    Mutating actions are preceded by an automatic checkpoint unless
    `auto_checkpoint` is False.

    Args:
        state: Initial ledger (mutated in place until a restore replaces it)
        actions: Validated action dictionaries
        verbose: Enable verbose logging
        log_file: Optional log file path
        auto_checkpoint: Save a checkpoint before each mutating action
        store: Checkpoint store to use (a fresh one by default)
        export_path: Write a DOT export of the final ledger here

    Returns:
        Tuple of (final ledger, EventLog)
    """
    logger = SimulatorLogger(verbose=verbose, log_file=log_file)
    event_log = EventLog()
    store = store if store is not None else CheckpointStore()

    logger.log(f"\n{'='*60}")
    logger.log("RAILWAY DEADLOCK MANAGER")
    logger.log(f"Trains: {state.num_consumers}, Track sections: {state.num_resources}")
    logger.log(f"{'='*60}")
    logger.log(state.display())

    capacity = state.capacity

    for index, action in enumerate(actions):
        action_type = action['type']

        if action_type in ('request', 'terminate', 'preempt') and auto_checkpoint:
            saved = store.save(state, f"pre-{action_type}")
            if not saved.success:
                logger.log(f"Action {index}: auto-checkpoint skipped ({saved.message})", "warning")

        if action_type == 'request':
            _apply_request(index, action, state, logger, event_log)

        elif action_type == 'terminate':
            result = terminate_consumer(state, action['consumer'])
            _record_recovery(index, action['consumer'], result, logger, event_log)

        elif action_type == 'preempt':
            result = preempt_resources(state, action['consumer'], action['units'])
            _record_recovery(index, action['consumer'], result, logger, event_log)

        elif action_type == 'save':
            result = store.save(state, action.get('label', ''))
            logger.log_checkpoint(index, result.message, result.success)
            event_log.add(SimulationEvent(
                index=index,
                event_type=EventType.CHECKPOINT if result.success else EventType.ERROR,
                message=result.message
            ))

        elif action_type == 'restore':
            result = store.restore(action['slot'])
            logger.log_checkpoint(index, result.message, result.success)
            if result.success:
                state = result.state
                capacity = state.capacity
            event_log.add(SimulationEvent(
                index=index,
                event_type=EventType.RESTORE if result.success else EventType.ERROR,
                message=result.message
            ))

        elif action_type == 'detect':
            _apply_detect(index, state, logger, event_log)

        elif action_type == 'recover':
            success, recovery_actions = recover_from_deadlock(
                state, action.get('strategy', 'fewest_resources')
            )
            for message in recovery_actions:
                logger.log(f"  {message}")
                if message.startswith("RECOVERY:"):
                    event_log.add(SimulationEvent(
                        index=index,
                        event_type=EventType.RECOVERY,
                        message=message
                    ))
            if not success:
                logger.log(f"Action {index}: recovery did not break a deadlock", "warning")

        # SANITY CHECK: conservation and need after every action
        state.assert_resource_conservation(capacity, f"after action {index} ({action_type})")
        state.assert_need_non_negative(f"after action {index} ({action_type})")
        logger.log_system_state(index, state.display())

    if export_path:
        export_dot(state, build_wait_for_graph(state), export_path)
        logger.log(f"\nDOT exported to {export_path}. Use 'dot -Tpng {export_path} -o out.png' to render.")

    _display_statistics(event_log, store, logger)

    logger.close()
    return state, event_log


def _apply_request(
    index: int,
    action: Dict[str, Any],
    state: AllocationState,
    logger: SimulatorLogger,
    event_log: EventLog
) -> None:
    """Run one Banker's request and record the decision."""
    consumer_id = action['consumer']
    units = list(action['units'])

    result = handle_request(state, consumer_id, units)

    train = state.consumer_names[consumer_id] if state.is_valid_consumer(consumer_id) \
        else f"Train{consumer_id}"
    logger.log_request(index, train, units, result.granted, result.reason)

    if logger.verbose:
        logger.log(f"  Available now: {state.available.tolist()}", "debug")

    event_log.add(SimulationEvent(
        index=index,
        event_type=EventType.ALLOCATION if result.granted else EventType.DENIAL,
        consumer_id=consumer_id,
        units=units,
        reason=result.reason
    ))


def _record_recovery(index, consumer_id, result, logger, event_log) -> None:
    if result.success:
        logger.log_recovery(index, result.message)
    else:
        logger.log(f"Action {index}: {result.message}", "error")

    event_log.add(SimulationEvent(
        index=index,
        event_type=EventType.RECOVERY if result.success else EventType.ERROR,
        consumer_id=consumer_id,
        units=result.released or None,
        message=result.message
    ))


def _apply_detect(
    index: int,
    state: AllocationState,
    logger: SimulatorLogger,
    event_log: EventLog
) -> None:
    """Run cycle detection and the safety check, then log both verdicts."""
    report = detect_deadlock(state)

    if logger.verbose:
        for waiter, holder in report.graph.edges():
            logger.log(
                f"  {state.consumer_names[waiter]} waits for {state.consumer_names[holder]}",
                "debug"
            )

    cycle_names = [state.consumer_names[i] for i in report.cycle] if report.deadlocked else None
    logger.log_detection(index, cycle_names, report.is_safe)

    if report.deadlocked:
        event_log.add(SimulationEvent(
            index=index,
            event_type=EventType.DEADLOCK,
            message=f"Cycle: {' -> '.join(cycle_names)}"
        ))
    else:
        event_log.add(SimulationEvent(
            index=index,
            event_type=EventType.NO_DEADLOCK,
            message="safe" if report.is_safe else "unsafe"
        ))


def _display_statistics(event_log: EventLog, store: CheckpointStore, logger: SimulatorLogger) -> None:
    """Display final run statistics."""
    logger.log("\nRun Statistics:")

    grants = len(event_log.get_events_by_type(EventType.ALLOCATION))
    denials = len(event_log.get_events_by_type(EventType.DENIAL))
    deadlocks = len(event_log.get_events_by_type(EventType.DEADLOCK))
    recoveries = len(event_log.get_events_by_type(EventType.RECOVERY))

    logger.log(f"  Requests Granted: {grants}")
    logger.log(f"  Requests Denied: {denials}")
    logger.log(f"  Deadlocks Detected: {deadlocks}")
    logger.log(f"  Recovery Actions: {recoveries}")
    logger.log(f"  Valid Checkpoints: {len(store.list_checkpoints())}/{store.capacity}")

    if logger.verbose:
        logger.log("\nEvent Log:", "debug")
        for event in event_log.events:
            logger.log(f"  {event}", "debug")


def main():
    """Main entry point for the simulator."""
    parser = argparse.ArgumentParser(
        description='Railway Deadlock Manager'
    )
    parser.add_argument(
        '--scenario',
        type=str,
        default='sample',
        help="'sample', 'random', or path to scenario JSON file (default: sample)"
    )
    parser.add_argument(
        '--trains',
        type=int,
        default=5,
        help='Number of trains for a random scenario (default: 5)'
    )
    parser.add_argument(
        '--tracks',
        type=int,
        default=5,
        help='Number of track sections for a random scenario (default: 5)'
    )
    parser.add_argument(
        '--max-units',
        type=int,
        default=3,
        help='Maximum units per track for a random scenario (default: 3)'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for a random scenario'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        default=None,
        help='Also write the log to this file'
    )
    parser.add_argument(
        '--export-dot',
        type=str,
        default=None,
        help='Write a Graphviz DOT export of the final ledger'
    )
    parser.add_argument(
        '--no-auto-checkpoint',
        action='store_true',
        help='Do not checkpoint before requests, terminations and preemptions'
    )

    args = parser.parse_args()

    try:
        if args.scenario == 'sample':
            state, actions = sample_scenario(), []
        elif args.scenario == 'random':
            state = random_scenario(args.trains, args.tracks, args.max_units, args.seed)
            actions = []
        else:
            state, actions = load_scenario(args.scenario)
            description = get_scenario_description(args.scenario)
            if description:
                print(description)
    except (ScenarioLoadError, ConfigurationError) as e:
        print(f"[ERROR] Failed to build scenario: {e}", file=sys.stderr)
        return 1

    if not actions:
        actions = [{'type': 'detect'}]

    run_simulation(
        state,
        actions,
        verbose=args.verbose,
        log_file=args.log_file,
        auto_checkpoint=not args.no_auto_checkpoint,
        export_path=args.export_dot
    )
    return 0


if __name__ == '__main__':
    sys.exit(main())
