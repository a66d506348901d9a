from simple_pid import PID


class AxisPID(PID):
    """
    Single-axis PID compensator fed directly with an error value.

    Differences from the stock simple_pid controller:
    - Input is the error itself (no setpoint), and the derivative acts on the error.
    - Integral anti-windup: the raw error accumulator is clamped to
      [-integral_limit, integral_limit] before it is scaled by Ki, independent
      of the output limits.
    - dt comes from the monotonic clock between calls; a zero dt (first call
      or no clock advance) yields a zero derivative instead of a division by zero.

    Attributes:
        integral_limit (float): Bound on the unscaled integral accumulator.
    """

    def __init__(self, Kp=1.0, Ki=0.0, Kd=0.0, output_limits=(-100, 100),
                 integral_limit=100.0, time_fn=None):
        self.integral_limit = integral_limit
        self._last_error = 0.0
        super().__init__(Kp=Kp, Ki=Ki, Kd=Kd, setpoint=0, sample_time=None,
                         output_limits=output_limits, time_fn=time_fn)

    @classmethod
    def from_gains(cls, gains, max_output, integral_limit=100.0, time_fn=None):
        """Build from a ``{'kp': .., 'ki': .., 'kd': ..}`` mapping with symmetric limits."""
        return cls(
            Kp=gains.get('kp', 0.0),
            Ki=gains.get('ki', 0.0),
            Kd=gains.get('kd', 0.0),
            output_limits=(-max_output, max_output),
            integral_limit=integral_limit,
            time_fn=time_fn,
        )

    def __call__(self, error, dt=None):
        if not self.auto_mode:
            return self._last_output

        now = self.time_fn()
        if dt is None:
            dt = now - self._last_time if self._last_time is not None else 0.0

        self._proportional = self.Kp * error

        self._integral += error * dt
        self._integral = max(-self.integral_limit, min(self.integral_limit, self._integral))

        if dt > 0:
            self._derivative = self.Kd * (error - self._last_error) / dt
        else:
            self._derivative = 0.0

        self._last_error = error
        self._last_time = now

        output = self._proportional + self.Ki * self._integral + self._derivative
        lower, upper = self.output_limits
        if upper is not None:
            output = min(upper, output)
        if lower is not None:
            output = max(lower, output)

        self._last_output = output
        return output

    def calculate(self, error):
        return self(error)

    def reset(self):
        super().reset()
        self._integral = 0.0
        self._last_error = 0.0

    @property
    def integral(self):
        """Unscaled integral accumulator."""
        return self._integral

    @property
    def last_error(self):
        return self._last_error

    @property
    def components(self):
        return self._proportional, self.Ki * self._integral, self._derivative
