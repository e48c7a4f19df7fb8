"""
Screw motion planner.

Plans a joint trajectory that moves an end effector along a commanded screw
(rotation about and translation along a fixed axis). The planner builds a
compound progress x joint state space, generates start and goal
configurations with IK, hands the constrained problem to a sampling-based
search algorithm and converts the solution into a validated trajectory.

Usage:
    planner = ScrewPlanner(model, "manipulator")
    result, response = planner.plan(request)
    if result is PlanningResult.SUCCESS and response.trajectory_is_valid:
        execute(response.joint_trajectory)
"""

from typing import Callable, Optional

import numpy as np
from compas.geometry import Frame

from screwmotion.core.config import PlannerConfig
from screwmotion.core.exceptions import (
    ConfigurationError,
    GeometryError,
    RobotError,
    StateSpaceError,
)
from screwmotion.core.geometry import (
    FrameRegistry,
    PoseSpec,
    ScrewAxis,
    serialize_screw,
)
from screwmotion.core.logging import get_logger, planning_context
from screwmotion.core.robot import KinematicModel, KinematicState
from screwmotion.motion.candidates import CandidateGenerator, CandidatePool
from screwmotion.motion.constraint import ScrewConstraintModel
from screwmotion.motion.goal import GoalRegion
from screwmotion.motion.messages import PlanningRequest, PlanningResponse, PlanningResult
from screwmotion.motion.roadmap import PlanningProblem, SearchAlgorithm, make_search_algorithm
from screwmotion.motion.sampling import (
    ConstrainedSampler,
    ConstrainedValidityChecker,
    ConstrainedValidSampler,
    PlanningContext,
)
from screwmotion.motion.state_space import (
    EE_FRAME_PARAM,
    MOVE_GROUP_PARAM,
    POSE_PARAM,
    SCREW_PARAM,
    ConstrainedStateSpace,
)
from screwmotion.motion.trajectory import TrajectoryExtractor

logger = get_logger(__name__)

SearchFactory = Callable[..., SearchAlgorithm]


class ScrewPlanner:
    """
    Plans screw motions for one move group of a robot.

    Only the kinematic model and the joint group are kept between calls;
    every ``plan()`` builds its own state space, kinematic state, samplers
    and search algorithm. One instance plans one request at a time.
    """

    def __init__(
        self,
        model: KinematicModel,
        move_group: str,
        config: Optional[PlannerConfig] = None,
        frames: Optional[FrameRegistry] = None,
        search_factory: SearchFactory = make_search_algorithm,
    ) -> None:
        """
        Initialize the planner.

        Args:
            model: Kinematics collaborator (FK, IK, collision)
            move_group: Name of the joint group to plan for
            config: Planner tuning parameters (defaults if None)
            frames: Frame registry for screw and pose frames
            search_factory: Builds the search algorithm from its name

        Raises:
            RobotError: If the move group is unknown
        """
        self.model = model
        self.config = config or PlannerConfig()
        self.joint_group = model.get_joint_group(move_group)
        self.frames = frames or FrameRegistry(model.planning_frame)
        self.search_factory = search_factory
        self._rng = np.random.default_rng(self.config.seed)

        # Data of the most recent plan() call
        self.state_space: Optional[ConstrainedStateSpace] = None
        self.constraint_model: Optional[ScrewConstraintModel] = None
        self.candidates: Optional[CandidatePool] = None
        self.search: Optional[SearchAlgorithm] = None

    def plan(
        self,
        request: PlanningRequest,
        response: Optional[PlanningResponse] = None,
    ) -> tuple[PlanningResult, PlanningResponse]:
        """
        Plan a trajectory for ``request``.

        The response is reset first and only filled on SUCCESS. Expected
        failures are reported through the result code, never raised.
        """
        if response is None:
            response = PlanningResponse()
        response.reset()

        self.state_space = None
        self.constraint_model = None
        self.candidates = None
        self.search = None

        with planning_context(
            move_group=self.joint_group.name, ee_frame=request.ee_frame_name
        ):
            logger.info("plan_started", theta=request.theta)
            result = self._plan(request, response)
            if result is not PlanningResult.SUCCESS:
                response.reset()
            logger.info(
                "plan_finished",
                result=result.name,
                waypoints=len(response.joint_trajectory.points),
                valid=response.trajectory_is_valid,
            )
        return result, response

    def _plan(self, request: PlanningRequest, response: PlanningResponse) -> PlanningResult:
        config = self.config
        group = self.joint_group

        if request.move_group != group.name:
            logger.error(
                "move_group_mismatch", requested=request.move_group, planner=group.name
            )
            return PlanningResult.INITIALIZATION_FAIL

        kinematic_state = KinematicState(self.model, group, self._rng)
        kinematic_state.set_to_default_values()

        try:
            space = ConstrainedStateSpace.from_joint_group(
                group, request.theta, config.longest_valid_segment_fraction
            )
        except StateSpaceError as e:
            logger.error("state_space_setup_failed", error=str(e))
            return PlanningResult.INITIALIZATION_FAIL
        self.state_space = space

        start_given = bool(request.start_joint_state)
        if start_given and len(request.start_joint_state) != group.variable_count:
            logger.error(
                "start_configuration_size_mismatch",
                expected=group.variable_count,
                got=len(request.start_joint_state),
            )
            return PlanningResult.NO_IK_SOLUTION

        try:
            start_pose = self._start_pose(request, kinematic_state)
            constraint = self._set_space_parameters(request, space, start_pose)
        except (GeometryError, RobotError, StateSpaceError) as e:
            logger.error("constraint_setup_failed", error=str(e))
            return PlanningResult.INITIALIZATION_FAIL
        self.constraint_model = constraint

        context = PlanningContext(self.model, group, request.ee_frame_name)
        checker = ConstrainedValidityChecker(
            space,
            constraint,
            context,
            position_tolerance=config.position_tolerance,
            orientation_tolerance=config.orientation_tolerance,
        )
        space.set_sampler_allocator(lambda s: ConstrainedSampler(s, self._rng))
        space.lock()

        def alloc_valid_sampler() -> ConstrainedValidSampler:
            return ConstrainedValidSampler(
                space,
                constraint,
                checker,
                context,
                attempts=config.valid_sampler_attempts,
                rng=self._rng,
            )

        try:
            search = self.search_factory(
                config.search_algorithm,
                max_nearest_neighbors=config.max_nearest_neighbors,
                rng=self._rng,
            )
        except ConfigurationError as e:
            logger.error("search_setup_failed", error=str(e))
            return PlanningResult.INITIALIZATION_FAIL
        self.search = search

        generator = CandidateGenerator(
            kinematic_state,
            request.ee_frame_name,
            request.theta,
            validity_checker=checker,
            duplicate_threshold=config.duplicate_threshold,
        )
        goal_pose = constraint.goal_pose(request.theta)
        if start_given:
            pool = generator.find_goal_states(
                request.start_joint_state, goal_pose, config.num_goal_candidates
            )
        else:
            pool = generator.find_start_goal_states(
                start_pose,
                goal_pose,
                config.num_start_candidates,
                config.num_goal_candidates,
            )
        self.candidates = pool
        if not pool.ok:
            logger.warning(
                "no_ik_solution", starts=len(pool.starts), goals=len(pool.goals)
            )
            return PlanningResult.NO_IK_SOLUTION

        goal = GoalRegion(space)
        problem = PlanningProblem(space, checker, alloc_valid_sampler, goal)
        for values in pool.starts:
            problem.add_start_state(space.make_state(0.0, values))
        for values in pool.goals:
            goal.add_state(space.make_state(request.theta, values))
        search.setup(problem)

        if not search.solve(config.planning_time):
            return PlanningResult.PLANNING_FAIL
        search.simplify(config.simplification_time)

        extractor = TrajectoryExtractor(
            checker, group.variable_names, goal_tolerance=config.goal_tolerance
        )
        extractor.populate_response(search.solution_path(), request.theta, response)
        return PlanningResult.SUCCESS

    def _start_pose(self, request: PlanningRequest, kinematic_state: KinematicState) -> Frame:
        """
        End-effector start pose in the planning frame.

        From forward kinematics when a start configuration is given,
        otherwise from the request's start pose.

        Raises:
            GeometryError: If neither is available
            RobotError: If forward kinematics fails
        """
        if request.start_joint_state:
            kinematic_state.set_joint_group_positions(request.start_joint_state)
            return kinematic_state.get_frame_transform(request.ee_frame_name)

        if request.start_pose is None:
            raise GeometryError("Request has neither a start configuration nor a start pose")
        return self.frames.pose_to_planning_frame(request.start_pose)

    def _set_space_parameters(
        self,
        request: PlanningRequest,
        space: ConstrainedStateSpace,
        start_pose: Frame,
    ) -> ScrewConstraintModel:
        """
        Express the screw in the planning frame, build the constraint model
        and register the space parameters.
        """
        screw = self.frames.to_planning_frame(
            request.screw, request.ee_frame_name, start_pose
        )
        constraint = ScrewConstraintModel(ScrewAxis.from_spec(screw), start_pose)

        space.params.add(SCREW_PARAM, serialize_screw(screw, request.theta))
        space.params.add(
            POSE_PARAM,
            PoseSpec.from_frame(start_pose, self.frames.planning_frame).model_dump_json(),
        )
        space.params.add(EE_FRAME_PARAM, request.ee_frame_name)
        space.params.add(MOVE_GROUP_PARAM, self.joint_group.name)
        return constraint
