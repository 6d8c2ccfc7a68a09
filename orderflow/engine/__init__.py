"""
Execution engine: the transition table, its driver, and the executor.

Import from the submodules directly:

    from orderflow.engine.executor import WorkflowExecutor
    from orderflow.engine.state_machine import ORDER_WORKFLOW, StateMachine
"""
