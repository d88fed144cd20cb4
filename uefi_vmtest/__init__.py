"""Run compiled firmware and OS tests inside a QEMU virtual machine."""
