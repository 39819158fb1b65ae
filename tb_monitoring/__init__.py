"""Standardization library for building CloudWatch alarms for AWS resources with Pulumi. Alarms are described in YAML
as sparse threshold settings which this library resolves into fully named, deduplicated alarm definitions.
"""

import pulumi
import yaml

from functools import cached_property
from os import environ
from tb_monitoring.constants import DEFAULT_PROTECTED_STACKS


class MonitoringProject:
    """The Pulumi project and stack that monitoring is being built for. Components of this library take their naming
    and tagging conventions from it and register their resources with it.

    :param protected_stacks: Stacks whose resources may not be changed or deleted without explicitly disabling
        protection. Defaults to :py:data:`tb_monitoring.constants.DEFAULT_PROTECTED_STACKS`.
    :type protected_stacks: list[str], optional
    """

    def __init__(self, protected_stacks: list[str] = DEFAULT_PROTECTED_STACKS):
        self.project: str = pulumi.get_project()  #: Pulumi project name
        self.stack: str = pulumi.get_stack()  #: Pulumi stack name, which also selects the config file
        #: Prefix for the names of shared resources, such as the alarm SNS topic
        self.name_prefix: str = f'{self.project}-{self.stack}'
        self.protected_stacks: list[str] = protected_stacks
        #: Stack settings from ``Pulumi.<stack>.yaml``
        self.pulumi_config: pulumi.config.Config = pulumi.Config()
        #: Child resources of every finished component, keyed by component name
        self.resources: dict = {}

        #: Tags applied to every taggable resource
        self.common_tags: dict = {
            'environment': self.stack,
            'project': self.project,
            'pulumi_project': self.project,
            'pulumi_stack': self.stack,
        }

    @cached_property
    def config(self) -> dict:
        """The stack's configuration, read once from ``config.<stack>.yaml`` in the working directory. A stack named
        "staging" reads ``config.staging.yaml``."""

        return load_config(f'config.{self.stack}.yaml')

    @property
    def monitoring_config(self) -> dict:
        """The ``monitoring`` section of the project configuration, or an empty dict if there is none."""

        return self.config.get('monitoring', None) or {}


class MonitoringComponentResource(pulumi.ComponentResource):
    """Base class for the Pulumi components of this library. It tags everything with the project's common tags and
    turns on resource protection for protected stacks.

    :param pulumi_type: Pulumi type token of the component, such as ``tb:cloudwatch:CloudWatchMonitoringGroup``. See
        `Pulumi's docs <https://www.pulumi.com/docs/concepts/resources/names/#types>`_.
    :type pulumi_type: str

    :param name: Name of the component. Child resources use it as a prefix of their own names.
    :type name: str

    :param project: The project this component belongs to.
    :type project: :py:class:`tb_monitoring.MonitoringProject`

    :param opts: Extra ``pulumi.ResourceOptions`` merged over this component's defaults. Defaults to None.
    :type opts: pulumi.ResourceOptions, optional

    :param tags: Tags added to the project's common tags for this component. Defaults to {}.
    :type tags: dict, optional
    """

    def __init__(
        self,
        pulumi_type: str,
        name: str,
        project: MonitoringProject,
        opts: pulumi.ResourceOptions = None,
        tags: dict = {},
    ):
        self.name: str = name  #: Name of the component
        self.project: MonitoringProject = project  #: Project this component belongs to

        protect = self.protect_resources
        if protect:
            pulumi.info(f'{name} is protected; export TBMONITORING_DISABLE_PROTECTION=True to change or delete it')

        super().__init__(t=pulumi_type, name=name, opts=pulumi.ResourceOptions(protect=protect).merge(opts))

        self.tags: dict = {**self.project.common_tags, **tags}  #: Tags for every taggable child resource
        self.resources: dict = {}  #: Child resources, set by :py:meth:`finish`

    def finish(self, resources: dict = {}):
        """Records this component's child resources, both here and on the project, and completes the component's
        registration with Pulumi. Subclasses call this once everything is declared.

        :param resources: Child resources by name. Defaults to {}.
        :type resources: dict, optional
        """

        self.resources = resources
        self.project.resources[self.name] = resources
        self.register_outputs({})

    @property
    def protect_resources(self) -> bool:
        """True for components in one of the project's protected stacks, unless ``TBMONITORING_DISABLE_PROTECTION``
        is set to a true value."""

        if self.project.stack not in self.project.protected_stacks:
            return False
        return not env_var_is_true('TBMONITORING_DISABLE_PROTECTION')


def load_config(path: str) -> dict:
    """Reads a YAML configuration file.

    :param path: Path to the YAML file.
    :type path: str

    :return: The parsed document, or an empty dict if the file is empty.
    :rtype: dict
    """

    with open(path, 'r') as fh:
        return yaml.load(fh.read(), Loader=yaml.SafeLoader) or {}


def env_var_matches(name: str, matches: list[str], default: bool = False) -> bool:
    """Compares an environment variable, ignoring case, against a list of values.

    :param name: Name of the environment variable.
    :type name: str

    :param matches: Values that count as a match.
    :type matches: list[str]

    :param default: Returned when the variable is set but matches nothing. Defaults to False.
    :type default: bool, optional

    :return: True on a match, ``default`` when the variable is set to something else, or None when it is not set.
    :rtype: bool
    """

    value = environ.get(name, None)
    if value is None:
        return None
    return True if value.lower() in {match.lower() for match in matches} else default


def env_var_is_true(name: str) -> bool:
    """Whether an environment variable is set to ``t``, ``true`` or ``yes`` in any case."""

    return env_var_matches(name, ['t', 'true', 'yes'], False)
