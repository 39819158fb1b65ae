"""Common code related to monitoring patterns."""

import pulumi

from collections.abc import Callable
from inspect import signature
from typing import TypeAlias
from tb_monitoring.alarm import AlarmDefinition, AlarmFactory, Annotation, CustomAlarmThreshold
from tb_monitoring.exceptions import AlarmConfigurationError, DuplicateAlarmNameError, UnknownAlarmKindError
from tb_monitoring.metric import Metric

#: Something that wants to act on all alarms of a monitoring unit at once, such as wiring up notifications
AlarmConsumer: TypeAlias = Callable[[list[AlarmDefinition]], None]


class MonitoringScope:
    """The place finished alarms are registered for export. A ``MonitoringScope`` keeps alarms in registration order and
    refuses to register two alarms with the same name.

    :param alarm_name_prefix: A prefix prepended to every generated alarm name in this scope. Defaults to None.
    :type alarm_name_prefix: str, optional
    """

    def __init__(self, alarm_name_prefix: str = None):
        self.alarm_name_prefix: str = alarm_name_prefix
        #: Alarms registered with this scope
        self.alarms: list[AlarmDefinition] = []

    def alarm_names(self) -> set[str]:
        return {alarm.name for alarm in self.alarms}

    def add_alarm(self, alarm: AlarmDefinition):
        """Registers an alarm with this scope.

        :param alarm: The alarm to register.
        :type alarm: tb_monitoring.alarm.AlarmDefinition

        :raises DuplicateAlarmNameError: When an alarm with the same name is already registered.
        """

        if alarm.name in self.alarm_names():
            raise DuplicateAlarmNameError(f'An alarm named {alarm.name} is already registered')
        self.alarms.append(alarm)


class Monitoring:
    """Builds all alarms for one monitored resource. Subclasses do their work in ``__init__``: they create an alarm
    factory, call :py:meth:`add_alarms` once per configured alarm kind, then call :py:meth:`finish`. Nothing is
    registered with the scope until ``finish`` runs, so a unit which fails partway through leaves the scope untouched.

    Subclasses list the alarm options they accept in ``ALARM_OPTIONS``, which maps a configuration key (such as
    ``records_throttled``) to the threshold class used for it. The constructor takes the matching keyword argument
    ``add_<key>_alarm``, a dict mapping disambiguators to thresholds.

    :param scope: The scope the finished alarms are registered with.
    :type scope: MonitoringScope
    """

    #: Configuration key to threshold class, for every alarm this unit supports
    ALARM_OPTIONS: dict[str, type] = {}

    def __init__(self, scope: MonitoringScope):
        self.scope = scope
        self.__created_alarms: list[AlarmDefinition] = []
        self.__claimed_names: set[str] = set()
        self.__annotations: dict[str, list[Annotation]] = {}

    @classmethod
    def from_config(cls, scope: MonitoringScope, config: dict, **kwargs) -> 'Monitoring':
        """Builds a unit from a configuration dict (shown here as YAML):

        .. code-block:: yaml
            :linenos:

            delivery_stream_name: orders
            human_readable_name: OrdersStream
            alarms:
                records_throttled:
                    '':
                        threshold: 50
                    shard-0:
                        threshold: 10
                        enabled: False

        Keys under ``alarms`` must appear in the unit's ``ALARM_OPTIONS``. Each entry below them is keyed by its
        disambiguator and responds to a boolean ``enabled`` value such that the alarm is not created if this is
        ``False``. Every other key in the entry is a setting of the option's threshold class. All other top-level keys
        are passed to the unit's constructor.

        :param scope: The scope the finished alarms are registered with.
        :type scope: MonitoringScope

        :param config: The unit's configuration.
        :type config: dict

        :param kwargs: Further keyword arguments for the constructor, such as ``use_created_alarms``.

        :raises UnknownAlarmKindError: When an alarm option is not supported by this unit.
        :raises DuplicateAlarmNameError: When two entries of one option have the same disambiguator once converted to
            strings, such as ``0`` and ``'0'``, or an empty key and a null one.
        :raises AlarmConfigurationError: When the configuration is otherwise invalid.
        """

        settings = dict(config or {})
        settings.pop('type', None)
        for option, entries in (settings.pop('alarms', None) or {}).items():
            threshold_type = cls.ALARM_OPTIONS.get(option)
            if threshold_type is None:
                raise UnknownAlarmKindError(
                    f'{cls.__name__} does not support the alarm {option!r}; '
                    f'choose from: {", ".join(sorted(cls.ALARM_OPTIONS))}'
                )

            thresholds, seen = {}, set()
            for disambiguator, entry in (entries or {}).items():
                entry = dict(entry or {})
                disambiguator = '' if disambiguator is None else str(disambiguator)
                if disambiguator in seen:
                    raise DuplicateAlarmNameError(
                        f'Alarm {option} of {cls.__name__} is configured twice with disambiguator {disambiguator!r}'
                    )
                seen.add(disambiguator)
                if not entry.pop('enabled', True):
                    pulumi.info(f'Alarm {option} {disambiguator!r} is disabled for {cls.__name__}')
                    continue
                thresholds[disambiguator] = threshold_type.from_config(entry)
            settings[f'add_{option}_alarm'] = thresholds

        try:
            signature(cls).bind(scope, **settings, **kwargs)
        except TypeError as ex:
            raise AlarmConfigurationError(f'Invalid configuration for {cls.__name__}: {ex}') from ex
        return cls(scope, **settings, **kwargs)

    def create_alarm_factory(self, name_prefix: str) -> AlarmFactory:
        """Returns an alarm factory whose alarm names begin with ``name_prefix`` and are claimed by this unit."""

        return AlarmFactory(owner=self, name_prefix=name_prefix, global_name_prefix=self.scope.alarm_name_prefix)

    def claim_alarm_name(self, name: str):
        """Reserves an alarm name for this unit.

        :raises DuplicateAlarmNameError: When the name is already used in the scope or by this unit.
        """

        if name in self.__claimed_names or name in self.scope.alarm_names():
            raise DuplicateAlarmNameError(
                f'Alarm name {name} is already in use; give alarms of the same kind distinct disambiguators'
            )
        self.__claimed_names.add(name)

    def add_alarms(
        self,
        family: str,
        metric: Metric,
        alarm_props: dict[str, CustomAlarmThreshold],
        create: Callable[..., AlarmDefinition],
    ) -> list[AlarmDefinition]:
        """Creates one alarm for each entry of ``alarm_props``, in order, collecting their annotations under ``family``.

        :param family: Name of the annotation collection, usually one per graph axis (such as ``age``).
        :type family: str

        :param metric: The metric to alarm on.
        :type metric: tb_monitoring.metric.Metric

        :param alarm_props: Thresholds keyed by disambiguator. May be None.
        :type alarm_props: dict[str, CustomAlarmThreshold]

        :param create: A domain alarm factory method taking ``(metric, props, disambiguator)``.
        :type create: Callable

        :return: The alarms created by this call.
        :rtype: list[AlarmDefinition]
        """

        annotations = self.__annotations.setdefault(family, [])
        created = []
        for disambiguator, props in (alarm_props or {}).items():
            alarm = create(metric, props, disambiguator)
            annotations.append(alarm.annotation)
            self.add_alarm(alarm)
            created.append(alarm)
        return created

    def add_alarm(self, alarm: AlarmDefinition):
        self.__created_alarms.append(alarm)

    def created_alarms(self) -> list[AlarmDefinition]:
        """All alarms created by this unit, in creation order."""

        return list(self.__created_alarms)

    def annotations(self, family: str) -> list[Annotation]:
        """Threshold annotations of one family, in creation order."""

        return list(self.__annotations.get(family, []))

    def finish(self, use_created_alarms: AlarmConsumer = None):
        """Registers all created alarms with the scope, then hands them to ``use_created_alarms`` in a single call.
        Subclasses call this at the end of their ``__init__`` function.

        :param use_created_alarms: Called once with the list of created alarms. Defaults to None.
        :type use_created_alarms: AlarmConsumer, optional
        """

        alarms = self.created_alarms()
        for alarm in alarms:
            self.scope.add_alarm(alarm)
        if use_created_alarms is not None:
            use_created_alarms(alarms)
