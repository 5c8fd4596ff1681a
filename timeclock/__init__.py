"""Time & attendance payroll computation engine."""
